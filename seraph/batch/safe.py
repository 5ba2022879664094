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

from seraph.batch.error import CommitFailedError, UnsupportedInTransactionError
from seraph.batch.transaction import Transaction


__all__ = ["safe_batch"]


log = getLogger(__name__)


def safe_batch(graph, record):
    """ Perform a compound single-shot operation atomically.

    A private :class:`.Transaction` is opened against `graph` and
    passed to `record`, which records the steps of the operation and
    returns the reference whose value is the operation's result. The
    transaction is then committed and that value returned; the
    transaction itself is never exposed.

    If the transaction fails, the underlying server or transport error
    is raised, as it would be for any other single-shot operation.

    :raises UnsupportedInTransactionError: if `graph` is itself a
        transaction, as safe batches cannot be nested
    """
    if isinstance(graph, Transaction):
        raise UnsupportedInTransactionError("A safe batch cannot be opened inside "
                                            "another transaction")
    tx = Transaction(graph)
    reference = record(tx)
    log.debug("Committing safe batch of %d jobs", len(tx))
    try:
        results = tx.commit()
    except CommitFailedError as failure:
        if failure.cause is None:
            raise
        raise failure.cause from failure
    return results[reference]
