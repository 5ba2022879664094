#!/usr/bin/env python
# -*- encoding: utf-8 -*-

# Copyright 2011-2020, Nigel Small
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


from collections.abc import Sequence
from logging import getLogger

from seraph.batch.error import InternalConsistencyError
from seraph.batch.reference import Reference


__all__ = ["CallSite", "CommitResult", "demultiplex", "notify"]


log = getLogger(__name__)


class CallSite(object):
    """ One recording call: the reference handed back to the caller and
    the callback, if any, to invoke with its value after commit.
    """

    def __init__(self, reference, callback=None):
        self.reference = reference
        self.callback = callback

    def __repr__(self):
        return "<CallSite %r>" % (self.reference,)


class CommitResult(Sequence):
    """ The values of a committed transaction, one per recording call
    in the order the calls were made. Entries can be looked up by
    position or by the :class:`.Reference` a call returned::

        >>> tx = graph.batch()
        >>> bob = tx.save({"name": "Bob"})
        >>> results = tx.commit()
        >>> results[bob]["name"]
        'Bob'

    """

    def __init__(self, table=None, values=()):
        self.__table = table
        self.__values = list(values)

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.__values)

    def __len__(self):
        return len(self.__values)

    def __iter__(self):
        return iter(self.__values)

    def __getitem__(self, key):
        if isinstance(key, Reference):
            if self.__table is None:
                raise KeyError(key)
            return self.__table.resolve(key)
        return self.__values[key]

    def __eq__(self, other):
        if isinstance(other, CommitResult):
            return self.__values == list(other)
        return self.__values == other

    def __ne__(self, other):
        return not self.__eq__(other)


def demultiplex(table, calls, jobs, job_results):
    """ Reconstruct the value of every recording call from the flat,
    ordered list of job results.

    :param table: the transaction's :class:`.ReferenceTable`
    :param calls: list of :class:`.CallSite` in recording order
    :param jobs: list of :class:`.Job` in recording order
    :param job_results: list of :class:`.JobResult`, one per job
    :rtype: :class:`.CommitResult`
    :raises InternalConsistencyError: if the job, slot and result
        counts disagree
    """
    if len(job_results) != len(jobs):
        raise InternalConsistencyError("Sent %d jobs but received %d results" %
                                       (len(jobs), len(job_results)))
    if len(table) != len(jobs):
        raise InternalConsistencyError("Allocated %d slots for %d jobs" % (len(table), len(jobs)))
    if sum(call.reference.count for call in calls) != len(jobs):
        raise InternalConsistencyError("Recording calls do not account for all %d jobs" %
                                       len(jobs))
    slot_values = []
    for i, (job, result) in enumerate(zip(jobs, job_results)):
        if result.job_id is not None and result.job_id != i:
            raise InternalConsistencyError("Result for job %r received in position %d" %
                                           (result.job_id, i))
        slot_values.append(job.hydrate_in_batch(result, slot_values))
    table.bind(slot_values)
    values = []
    for call in calls:
        value = table.resolve(call.reference)
        table.bind_reference(call.reference, value)
        values.append(value)
    log.debug("Demultiplexed %d results for %d calls", len(slot_values), len(values))
    return CommitResult(table, values)


def notify(calls, results):
    """ Invoke the per-call callbacks of a committed transaction with
    the values of their calls, in recording order.
    """
    for call, value in zip(calls, results):
        if call.callback is not None:
            call.callback(value)
