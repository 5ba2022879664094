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


from seraph.batch.jobs import CreateSchemaIndexJob, PullSchemaIndexesJob, DropSchemaIndexJob, \
    CreateUniquenessConstraintJob, PullUniquenessConstraintsJob, DropUniquenessConstraintJob
from seraph.errors import ClientError


__all__ = ["Schema"]


CONFLICT = 409


class Schema(object):
    """ Schema indexes and uniqueness constraints of a graph.
    """

    def __init__(self, graph):
        self.graph = graph

    def create_index(self, label, key):
        return self.graph._run(CreateSchemaIndexJob(label, [key]))

    def create_index_if_none(self, label, key):
        """ Create a schema index, or return the existing one if there
        already is an index on `key` for `label`.
        """
        try:
            return self.create_index(label, key)
        except ClientError as error:
            if error.status != CONFLICT:
                raise
        return self._find(self.list_indexes(label), key)

    def list_indexes(self, label):
        return self.graph._run(PullSchemaIndexesJob(label))

    def drop_index(self, label, key):
        self.graph._run(DropSchemaIndexJob(label, key))

    def create_uniqueness_constraint(self, label, key):
        return self.graph._run(CreateUniquenessConstraintJob(label, [key]))

    def create_uniqueness_constraint_if_none(self, label, key):
        try:
            return self.create_uniqueness_constraint(label, key)
        except ClientError as error:
            if error.status != CONFLICT:
                raise
        return self._find(self.list_uniqueness_constraints(label), key)

    def list_uniqueness_constraints(self, label, key=None):
        return self.graph._run(PullUniquenessConstraintsJob(label, key))

    def drop_uniqueness_constraint(self, label, key):
        self.graph._run(DropUniquenessConstraintJob(label, key))

    @classmethod
    def _find(cls, entries, key):
        for entry in entries or []:
            if entry.get("property_keys", [None])[0] == key:
                return entry
        return None
