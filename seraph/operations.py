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


from collections.abc import Mapping

from seraph.batch.jobs import Target, CreateNodeJob, PushPropertiesJob, PushPropertyJob, \
    PullPropertiesJob, DeleteEntityJob, PullRelationshipJob, PullRelationshipsJob, \
    AddNodeLabelsJob, RemoveNodeLabelJob, PullNodeLabelsJob, PullLabelledNodesJob, \
    AddToIndexJob, PullIndexJob, RemoveFromIndexJob, CypherJob, cross_product, entity_id, \
    entity_uri
from seraph.batch.error import InvalidReferenceError
from seraph.batch.reference import Literal, Ref, argument


__all__ = ["Operations"]


DIRECTIONS = ("all", "in", "out")
INDEX_KINDS = ("node", "relationship")


class Operations(object):
    """ The graph operations shared by :class:`.Graph`, which performs
    them immediately, and :class:`.Transaction`, which records them
    for later execution as one atomic batch.

    Every operation encodes its arguments into one job per element and
    hands the jobs to :meth:`_dispatch` along with the shape of the
    value the caller expects back: :const:`None` for a single value,
    ``(k,)`` for a list, or ``(m, n)`` for a list of lists.

    Wherever a node or relationship is expected, callers may pass an
    integer id, an object carrying an id under the configured id key,
    a :class:`.Reference` returned by an earlier call in the same
    transaction, or a flat list of any of these. A reference stands for
    the node or relationship its call created or acted upon; references
    to calls that neither create nor act upon a single entity, such as
    queries and deletes, cannot be passed on.
    """

    config = None

    def _check_reference(self, reference):
        raise NotImplementedError

    def _subject(self, reference):
        raise NotImplementedError

    def _dispatch(self, jobs, shape, callback=None):
        raise NotImplementedError

    def _save_labelled(self, obj, labels, key=None, value=None, callback=None):
        raise NotImplementedError

    def _delete_forced(self, node, callback=None):
        raise NotImplementedError

    def _follow(self, reference, kind=None):
        """ Return the ``(kind, argument)`` pair that addresses the
        entity behind a scalar reference in a later job.
        """
        subject = self._subject(reference)
        if subject is None:
            raise InvalidReferenceError("%r does not stand for a node or relationship" %
                                        (reference,))
        if kind is not None and subject[0] != kind:
            raise InvalidReferenceError("%r stands for a %s, not a %s" %
                                        (reference, subject[0], kind))
        return subject

    def _elements(self, obj, kind="node"):
        """ Split an argument into tagged elements, returning those
        elements and whether the caller supplied a group.
        """
        if isinstance(obj, (list, tuple)):
            elements = []
            for item in obj:
                if isinstance(item, (list, tuple)):
                    raise TypeError("Nested lists are not supported")
                elements.extend(self._elements(item, kind)[0])
            return elements, True
        arg = argument(obj)
        if not isinstance(arg, Ref):
            return [arg], False
        self._check_reference(arg.reference)
        elements = [self._follow(ref, kind)[1] for ref in arg.reference.expand()]
        return elements, arg.reference.is_group

    def _each(self, obj, encode, callback, kind="node"):
        elements, group = self._elements(obj, kind)
        jobs = [encode(arg) for arg in elements]
        return self._dispatch(jobs, (len(jobs),) if group else None, callback)

    def _target(self, arg, kind="node"):
        return Target.entity(arg, kind, self.config)

    def save(self, obj, key=None, value=None, label=None, callback=None):
        """ Create or update one or more nodes.

        An object without an identity is created and returned as a copy
        carrying its new identity. An object with an identity has all
        of its properties replaced. If `key` is given, only that one
        property is set, to `value`.

        :param obj: node properties, or a list of them
        :param key: single property key to set
        :param value: value for `key`
        :param label: label or list of labels to add to saved nodes;
            not available within a transaction
        :param callback: function to call with the saved value
        """
        if label is not None:
            return self._save_labelled(obj, label, key, value, callback)

        def encode(arg):
            if key is not None:
                original = arg.value if isinstance(arg, Literal) else None
                return PushPropertyJob(self._target(arg), key, value, original)
            if isinstance(arg, Ref) or not isinstance(arg.value, Mapping):
                raise ValueError("No data to save")
            properties = arg.value
            if properties.get(self.config.id_key) is None:
                return CreateNodeJob(properties, self.config)
            entity_id(properties, self.config)
            return PushPropertiesJob(self._target(arg),
                                     {k: v for k, v in properties.items()
                                      if k != self.config.id_key},
                                     original=properties)

        return self._each(obj, encode, callback)

    def read(self, node, callback=None):
        """ Read the properties of one or more nodes.
        """
        def encode(arg):
            identity = entity_id(arg.value, self.config) if isinstance(arg, Literal) else None
            return PullPropertiesJob(self._target(arg), self.config, identity)

        return self._each(node, encode, callback)

    def delete(self, node, force=False, callback=None):
        """ Delete one or more nodes. With `force`, the relationships of
        each node are deleted with it, atomically.
        """
        if force:
            return self._delete_forced(node, callback)
        return self._each(node, lambda arg: DeleteEntityJob(self._target(arg)), callback)

    def relate(self, start_node, type, end_node, properties=None, callback=None):
        """ Create relationships from `start_node` to `end_node`.

        Either end may be a group, in which case one relationship is
        created per pair. Relating a single node to a group yields a
        list; relating two groups yields a list of lists, one inner
        list per start node.
        """
        starts, start_group = self._elements(start_node)
        ends, end_group = self._elements(end_node)
        jobs = cross_product(starts, type, ends, properties, self.config)
        if start_group and end_group:
            shape = (len(starts), len(ends))
        elif start_group:
            shape = (len(starts),)
        elif end_group:
            shape = (len(ends),)
        else:
            shape = None
        return self._dispatch(jobs, shape, callback)

    def relationships(self, node, direction="all", type=None, callback=None):
        """ Read the relationships of one or more nodes, optionally
        restricted by direction (``'all'``, ``'in'`` or ``'out'``) and
        relationship type.
        """
        direction = str(direction).lower()
        if direction not in DIRECTIONS:
            raise ValueError("Invalid direction %r" % direction)
        return self._each(node, lambda arg: PullRelationshipsJob(self._target(arg), direction,
                                                                 type, self.config), callback)

    def read_relationship(self, rel, callback=None):
        return self._each(rel, lambda arg: PullRelationshipJob(self._target(arg, "relationship"),
                                                               self.config),
                          callback, "relationship")

    def update_relationship(self, rel, properties=None, callback=None):
        """ Replace the properties of one or more relationships. Unless
        `properties` is given, each relationship object's own
        ``properties`` are saved.
        """
        def encode(arg):
            original = arg.value if isinstance(arg, Literal) else None
            if properties is not None:
                data = properties
            elif isinstance(original, Mapping):
                data = original.get("properties") or {}
            else:
                raise ValueError("No properties to save")
            return PushPropertiesJob(self._target(arg, "relationship"), data, original)

        return self._each(rel, encode, callback, "relationship")

    def delete_relationship(self, rel, callback=None):
        return self._each(rel, lambda arg: DeleteEntityJob(self._target(arg, "relationship")),
                          callback, "relationship")

    def label(self, node, labels, callback=None):
        """ Add one or more labels to one or more nodes.
        """
        if isinstance(labels, str):
            labels = [labels]
        labels = list(labels)
        if not labels:
            raise ValueError("No labels given")
        return self._each(node, lambda arg: AddNodeLabelsJob(self._target(arg), labels), callback)

    def remove_label(self, node, label, callback=None):
        return self._each(node, lambda arg: RemoveNodeLabelJob(self._target(arg), label), callback)

    def read_labels(self, node, callback=None):
        return self._each(node, lambda arg: PullNodeLabelsJob(self._target(arg)), callback)

    def nodes_with_label(self, label, key=None, value=None, callback=None):
        """ Fetch all nodes with `label`, optionally only those whose
        property `key` equals `value`.
        """
        return self._dispatch([PullLabelledNodesJob(label, self.config, key, value)], None,
                              callback)

    def find(self, predicate, any=False, label=None, callback=None):
        """ Find nodes whose properties match all (or, with `any`, at
        least one) of the key-value pairs in `predicate`.
        """
        if not isinstance(predicate, Mapping):
            raise TypeError("Invalid predicate %r" % (predicate,))
        parameters = {}
        conditions = []
        for i, (key, value) in enumerate(sorted(predicate.items())):
            name = "p%d" % i
            conditions.append("n.`%s` = {%s}" % (key.replace("`", "``"), name))
            parameters[name] = value
        clauses = ["MATCH (n:`%s`)" % label.replace("`", "``") if label else "MATCH (n)"]
        if conditions:
            clauses.append("WHERE " + (" OR " if any else " AND ").join(conditions))
        clauses.append("RETURN n")
        return self.query(" ".join(clauses), parameters, callback=callback)

    def add_to_index(self, entity, index, key, value, kind="node", callback=None):
        """ Add one or more entities to a legacy index.
        """
        if kind not in INDEX_KINDS:
            raise ValueError("Invalid index kind %r" % kind)
        return self._each(entity, lambda arg: AddToIndexJob(kind, index, arg, key, value,
                                                            self.config), callback, kind)

    def read_index(self, index, key, value, kind="node", callback=None):
        if kind not in INDEX_KINDS:
            raise ValueError("Invalid index kind %r" % kind)
        return self._dispatch([PullIndexJob(kind, index, key, value, self.config)], None,
                              callback)

    def remove_from_index(self, entity, index, key=None, value=None, kind="node",
                          callback=None):
        if kind not in INDEX_KINDS:
            raise ValueError("Invalid index kind %r" % kind)
        if key is None and value is not None:
            raise ValueError("A value can only be given along with a key")
        return self._each(entity, lambda arg: RemoveFromIndexJob(kind, index, arg, self.config,
                                                                 key, value), callback, kind)

    def query(self, statement, parameters=None, callback=None):
        """ Run a Cypher statement and return its records, keyed by
        column, or a list of values if there is only one column.
        """
        return self._query(statement, parameters, callback, raw=False)

    def query_raw(self, statement, parameters=None, callback=None):
        """ Run a Cypher statement and return the server's result
        document unaltered.
        """
        return self._query(statement, parameters, callback, raw=True)

    def _query(self, statement, parameters, callback, raw):
        if not isinstance(statement, str):
            raise TypeError("Invalid query %r" % (statement,))
        parameters = {key: self._parameter(value)
                      for key, value in dict(parameters or {}).items()}
        return self._dispatch([CypherJob(statement, parameters, self.config, raw=raw)], None,
                              callback)

    def _parameter(self, value):
        """ Replace references within a query parameter by the
        reference or URI the server should bind in their place.
        """
        if isinstance(value, (list, tuple)):
            return [self._parameter(item) for item in value]
        arg = argument(value)
        if not isinstance(arg, Ref):
            return value
        self._check_reference(arg.reference)
        addresses = []
        for ref in arg.reference.expand():
            kind, subject = self._follow(ref)
            if isinstance(subject, Ref):
                addresses.append(subject.reference)
            else:
                addresses.append(entity_uri(subject, kind, self.config))
        return addresses if arg.reference.is_group else addresses[0]
