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


from seraph.batch.error import *
from seraph.batch.reference import Reference, ReferenceTable, Literal, Ref
from seraph.batch.jobs import Job, JobResult, Target
from seraph.batch.results import CommitResult
from seraph.batch.transaction import Transaction
from seraph.batch.safe import safe_batch


__all__ = ["BatchError", "InvalidReferenceError", "UnresolvedReferenceError",
           "UnsupportedInTransactionError", "TransactionClosedError", "CommitFailedError",
           "InternalConsistencyError", "Reference", "ReferenceTable", "Literal", "Ref",
           "Job", "JobResult", "Target", "CommitResult", "Transaction", "safe_batch"]
