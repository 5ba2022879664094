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


from logging import getLogger

from seraph.batch.error import CommitFailedError, TransactionClosedError, \
    UnsupportedInTransactionError
from seraph.batch.jobs import JobResult
from seraph.batch.reference import ReferenceTable
from seraph.batch.results import CallSite, demultiplex, notify
from seraph.errors import ConnectionUnavailable, Neo4jError
from seraph.operations import Operations


__all__ = ["Transaction"]


log = getLogger(__name__)


class Transaction(Operations):
    """ Logical context for a series of graph operations that are
    executed together, atomically, in a single request.

    A transaction offers the same operations as :class:`.Graph`, but
    instead of performing them, each call records one or more jobs and
    immediately returns a :class:`.Reference` to its eventual value.
    References can be passed to later calls in the same transaction,
    which makes it possible to relate or label nodes that do not exist
    yet::

        >>> tx = graph.batch()
        >>> alice = tx.save({"name": "Alice"})
        >>> friends = tx.save([{"name": "Bob"}, {"name": "Carol"}])
        >>> knows = tx.relate(alice, "KNOWS", friends)
        >>> tx.label(friends, "Person")
        >>> results = tx.commit()
        >>> [rel["end"] for rel in results[knows]] == [f["id"] for f in results[friends]]
        True

    Recording never performs I/O. The whole job list is sent by
    :meth:`.commit`, and either every job succeeds or the transaction
    fails as a whole with :class:`.CommitFailedError`, in which case no
    per-call callback is invoked. Once commit has been called, no
    further calls can be recorded.

    Transactions can also be used as context managers, committing on
    a clean exit from the block and discarding all recorded jobs if
    an exception is raised within it.
    """

    def __init__(self, graph):
        self.graph = graph
        self.config = graph.config
        self.__table = ReferenceTable()
        self.__jobs = []
        self.__calls = []
        self.__state = "open"

    def __repr__(self):
        return "<%s state=%s jobs=%d>" % (self.__class__.__name__, self.__state, len(self.__jobs))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.__state != "open":
            return
        if exc_type is None:
            self.commit()
        else:
            self.discard()

    def __len__(self):
        return len(self.__jobs)

    @property
    def jobs(self):
        return tuple(self.__jobs)

    @property
    def state(self):
        """ One of ``'open'``, ``'committing'``, ``'committed'``,
        ``'failed'`` or ``'discarded'``.
        """
        return self.__state

    @property
    def closed(self):
        return self.__state != "open"

    def _assert_open(self):
        if self.__state != "open":
            raise TransactionClosedError("Transaction is %s" % self.__state)

    def _check_reference(self, reference):
        self._assert_open()
        self.__table.check(reference)

    def _subject(self, reference):
        return self.__jobs[reference.first].subject(reference)

    def _dispatch(self, jobs, shape, callback=None):
        self._assert_open()
        if callback is not None and not callable(callback):
            raise TypeError("Callback %r is not callable" % (callback,))
        reference = self.__table.allocate(len(jobs), shape)
        self.__jobs.extend(jobs)
        self.__calls.append(CallSite(reference, callback))
        log.debug("Recorded %r as %r", jobs, reference)
        return reference

    def _save_labelled(self, obj, labels, key=None, value=None, callback=None):
        raise UnsupportedInTransactionError("Nodes cannot be saved with a label inside a "
                                            "transaction; save the node, then label it")

    def _delete_forced(self, node, callback=None):
        raise UnsupportedInTransactionError("Forced deletes cannot be performed inside a "
                                            "transaction; delete the relationships first")

    def resolve(self, reference):
        """ Return the value of a reference issued by this transaction.

        :raises UnresolvedReferenceError: before a successful commit
        """
        return self.__table.resolve(reference)

    def discard(self):
        """ Abandon this transaction without sending anything.
        """
        self._assert_open()
        self.__state = "discarded"
        log.debug("Discarded transaction with %d jobs", len(self.__jobs))

    def commit(self, callback=None):
        """ Execute all recorded jobs as a single atomic request.

        Per-call callbacks run once the transaction has committed, in
        recording order. If `callback` is given, it is called as
        ``callback(failure, results)`` once the outcome is known, with
        one of the two arguments set to :const:`None`; commit then
        returns the results, or :const:`None` if the transaction failed.
        Without a callback, a failed transaction raises
        :class:`.CommitFailedError`.

        :returns: :class:`.CommitResult` with one entry per recording
            call, in recording order
        """
        self._assert_open()
        self.__state = "committing"
        try:
            results = self._execute()
        except CommitFailedError as failure:
            self.__state = "failed"
            log.warning("Transaction failed: %s", failure)
            if callback is None:
                raise
            callback(failure, None)
            return None
        except Exception:
            self.__state = "failed"
            raise
        else:
            self.__state = "committed"
            notify(self.__calls, results)
            if callback is not None:
                callback(None, results)
            return results

    def _execute(self):
        if not self.__jobs:
            log.debug("No jobs to send for transaction")
            return demultiplex(self.__table, self.__calls, self.__jobs, [])
        try:
            documents = self.graph.transport.execute(self.__jobs)
        except (ConnectionUnavailable, Neo4jError) as error:
            raise CommitFailedError("Transaction failed: %s" % error, cause=error,
                                    status_code=getattr(error, "status", None)) from error
        job_results = [JobResult.hydrate(document) for document in documents]
        for i, result in enumerate(job_results):
            if not result.ok:
                cause = Neo4jError.hydrate(result.content, result.status_code)
                raise CommitFailedError("Job %s failed with HTTP status %s: %s" %
                                        (i, result.status_code, cause),
                                        cause=cause, job_id=i, status_code=result.status_code)
        return demultiplex(self.__table, self.__calls, self.__jobs, job_results)
