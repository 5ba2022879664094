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


__all__ = ["BatchError", "InvalidReferenceError", "UnresolvedReferenceError",
           "UnsupportedInTransactionError", "TransactionClosedError",
           "CommitFailedError", "InternalConsistencyError"]


class BatchError(Exception):
    """ Base class for all errors raised by the batch engine.
    """


class InvalidReferenceError(BatchError, ValueError):
    """ A reference was used outside the transaction that produced it,
    or points at a job that has not been recorded.
    """


class UnresolvedReferenceError(BatchError):
    """ A reference was resolved before its transaction committed.
    """


class UnsupportedInTransactionError(BatchError, TypeError):
    """ An operation cannot be deferred into a transaction.
    """


class TransactionClosedError(BatchError):
    """ A transaction was used after commit had been invoked on it.
    """


class CommitFailedError(BatchError):
    """ Raised when a transaction fails as a whole. No results from any
    job in the transaction are exposed.

    :ivar cause: the underlying transport or server error, if any
    :ivar job_id: index of the job reported as failed, if known
    :ivar status_code: HTTP status reported for the failure, if known
    """

    def __init__(self, message, cause=None, job_id=None, status_code=None):
        super(CommitFailedError, self).__init__(message)
        self.cause = cause
        self.job_id = job_id
        self.status_code = status_code


class InternalConsistencyError(BatchError):
    """ The number of results received does not match the number of
    jobs sent. This indicates a bug rather than a usage error.
    """
