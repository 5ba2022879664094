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

"""
Protocol-level jobs for the Neo4j REST API.

A :class:`.Job` is one request against the REST service: an HTTP
method, a target path and an optional JSON body. The same job objects
are used for single-shot requests and for entries in a batch, where a
target may begin with a back-reference of the form ``{N}`` to the
entity created by job `N` of the same batch. Each job also knows how
to turn its own result into the value a caller expects.
"""


from collections.abc import Mapping
from json import dumps as json_dumps
from urllib.parse import quote

from seraph.batch.error import InvalidReferenceError
from seraph.batch.reference import Literal, Ref, argument
from seraph.hydration import entity_id_in, hydrate, hydrate_node, hydrate_relationship, \
    hydrate_rows, uri_to_id


__all__ = ["Target", "Job", "JobResult", "entity_id", "entity_uri",
           "CreateNodeJob", "PushPropertiesJob", "PushPropertyJob", "PullPropertiesJob",
           "DeleteEntityJob", "CreateRelationshipJob", "PullRelationshipJob",
           "PullRelationshipsJob", "AddNodeLabelsJob", "RemoveNodeLabelJob",
           "PullNodeLabelsJob", "PullLabelledNodesJob", "AddToIndexJob", "PullIndexJob",
           "RemoveFromIndexJob", "CypherJob", "CreateSchemaIndexJob", "PullSchemaIndexesJob",
           "DropSchemaIndexJob", "CreateUniquenessConstraintJob",
           "PullUniquenessConstraintsJob", "DropUniquenessConstraintJob",
           "cross_product"]


def entity_id(value, config):
    """ Return the server identity of a concrete node or relationship,
    given either as an integer id or as an object carrying one under
    the configured id key.
    """
    if isinstance(value, Mapping):
        value = value.get(config.id_key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("Invalid ID %r" % (value,))
    return value


def entity_uri(arg, kind, config):
    """ Return the URI used in a request body to refer to an entity,
    which is a back-reference for :class:`.Ref` arguments.
    """
    arg = argument(arg)
    if isinstance(arg, Ref):
        return "{%d}" % arg.slot
    return "%s/db/data/%s/%d" % (config.endpoint, kind, entity_id(arg.value, config))


class Target(object):
    """ Path of a request, relative to the service root.

    :ivar subject: the ``(kind, argument)`` pair for the node or
        relationship the path is about, if any
    """

    def __init__(self, base, *offsets, subject=None):
        self.base = base
        self.offsets = offsets
        self.subject = subject

    @classmethod
    def entity(cls, arg, kind, config, *offsets):
        """ Target a node or relationship, either concrete or by
        back-reference to an earlier job.
        """
        arg = argument(arg)
        if isinstance(arg, Ref):
            base = "{%d}" % arg.slot
        else:
            base = "/%s/%d" % (kind, entity_id(arg.value, config))
        return cls(base, *offsets, subject=(kind, arg))

    def offset(self, *offsets):
        """ Return a target further down the path, about the same entity.
        """
        return Target(self.base, *(self.offsets + offsets), subject=self.subject)

    @property
    def uri_string(self):
        uri_string = self.base
        if self.offsets:
            if not uri_string.endswith("/"):
                uri_string += "/"
            uri_string += "/".join(quote(str(offset), safe="") for offset in self.offsets)
        return uri_string


class Job(object):
    """ Individual REST request.
    """

    def __init__(self, method, target, body=None):
        self.method = method
        self.target = target
        self.body = body

    def __repr__(self):
        parts = [self.method, self.target.uri_string]
        if self.body is not None:
            parts.append(json_dumps(self.body, separators=(",", ":"), sort_keys=True))
        return " ".join(parts)

    def __eq__(self, other):
        return self is other

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash(id(self))

    def __iter__(self):
        yield "method", self.method
        yield "to", self.target.uri_string
        if self.body is not None:
            yield "body", self.body

    def hydrate(self, result):
        """ Convert the :class:`.JobResult` for this job into the value
        returned to the caller.
        """
        return result.content

    def hydrate_in_batch(self, result, earlier):
        """ Hydrate a result received within a batch, where `earlier`
        holds the values already hydrated for the preceding jobs.
        """
        return self.hydrate(result)

    def subject(self, reference):
        """ Return the ``(kind, argument)`` pair that a later job in the
        same batch should use to address the entity behind `reference`,
        a scalar reference to this job. Jobs that create an entity can
        be referred back to by location; jobs that act on an existing
        entity stand for that entity. All others return :const:`None`.
        """
        return None


class JobResult(object):
    """ Individual REST response, either for a single-shot request or
    for one job within a batch.
    """

    @classmethod
    def hydrate(cls, data):
        """ Build a result from one entry of a batch response.
        """
        return cls(data.get("id"), data.get("from"), data.get("status"),
                   data.get("location"), data.get("body"))

    def __init__(self, job_id, uri, status_code=None, location=None, content=None):
        self.job_id = job_id
        self.uri = uri
        self.status_code = status_code or 200
        self.location = location
        self.content = content

    def __repr__(self):
        parts = ["{%s}" % self.job_id, str(self.status_code)]
        if self.content is not None:
            parts.append(repr(self.content))
        return " ".join(parts)

    @property
    def ok(self):
        return 200 <= self.status_code < 300


class CreateNodeJob(Job):

    def __init__(self, properties, config):
        self.properties = dict(properties)
        self.properties.pop(config.id_key, None)
        self.config = config
        Job.__init__(self, "POST", Target("/node"), self.properties)

    def hydrate(self, result):
        node = dict(self.properties)
        identity = uri_to_id(result.location)
        if identity is None and isinstance(result.content, dict):
            identity = uri_to_id(result.content.get("self"))
        node[self.config.id_key] = identity
        return node

    def subject(self, reference):
        return "node", Ref(reference)


class PushPropertiesJob(Job):
    """ Replace all properties of a node or relationship. The result is
    the object that was saved.
    """

    def __init__(self, target, properties, original=None):
        Job.__init__(self, "PUT", target.offset("properties"), dict(properties))
        self.original = original

    def hydrate(self, result):
        return self.original

    def subject(self, reference):
        return self.target.subject


class PushPropertyJob(Job):

    def __init__(self, target, key, value, original=None):
        Job.__init__(self, "PUT", target.offset("properties", key), value)
        self.key = key
        self.value = value
        self.original = original

    def hydrate(self, result):
        return self._updated(self.original)

    def hydrate_in_batch(self, result, earlier):
        _, arg = self.target.subject or (None, None)
        if self.original is None and isinstance(arg, Ref):
            return self._updated(earlier[arg.slot])
        return self.hydrate(result)

    def _updated(self, node):
        if isinstance(node, Mapping):
            return dict(node, **{self.key: self.value})
        return None

    def subject(self, reference):
        return self.target.subject


class PullPropertiesJob(Job):

    def __init__(self, target, config, identity=None):
        Job.__init__(self, "GET", target.offset("properties"))
        self.config = config
        self.identity = identity

    def hydrate(self, result):
        identity = self.identity
        if identity is None:
            identity = entity_id_in(result.uri, "node")
        return self._node(result, identity)

    def hydrate_in_batch(self, result, earlier):
        _, arg = self.target.subject or (None, None)
        if self.identity is None and isinstance(arg, Ref) and \
                isinstance(earlier[arg.slot], Mapping):
            return self._node(result, earlier[arg.slot].get(self.config.id_key))
        return self.hydrate(result)

    def _node(self, result, identity):
        node = dict(result.content or {})
        node[self.config.id_key] = identity
        return node

    def subject(self, reference):
        return self.target.subject


class DeleteEntityJob(Job):

    def __init__(self, target):
        Job.__init__(self, "DELETE", target)

    def hydrate(self, result):
        return None


class CreateRelationshipJob(Job):

    def __init__(self, start_node, type, end_node, properties, config):
        body = {"to": entity_uri(end_node, "node", config), "type": type}
        if properties:
            body["data"] = dict(properties)
        Job.__init__(self, "POST", Target.entity(start_node, "node", config, "relationships"),
                     body)
        self.config = config

    def hydrate(self, result):
        return hydrate_relationship(result.content, self.config)

    def subject(self, reference):
        return "relationship", Ref(reference)


class PullRelationshipJob(Job):

    def __init__(self, target, config):
        Job.__init__(self, "GET", target)
        self.config = config

    def hydrate(self, result):
        return hydrate_relationship(result.content, self.config)

    def subject(self, reference):
        return self.target.subject


class PullRelationshipsJob(Job):

    def __init__(self, target, direction, type, config):
        offsets = ("relationships", direction)
        if type:
            offsets += (type,)
        Job.__init__(self, "GET", target.offset(*offsets))
        self.config = config

    def hydrate(self, result):
        return [hydrate_relationship(rel, self.config) for rel in result.content or []]


class AddNodeLabelsJob(Job):

    def __init__(self, target, labels):
        Job.__init__(self, "POST", target.offset("labels"), list(labels))

    def hydrate(self, result):
        return None

    def subject(self, reference):
        return self.target.subject


class RemoveNodeLabelJob(Job):

    def __init__(self, target, label):
        Job.__init__(self, "DELETE", target.offset("labels", label))

    def hydrate(self, result):
        return None

    def subject(self, reference):
        return self.target.subject


class PullNodeLabelsJob(Job):

    def __init__(self, target):
        Job.__init__(self, "GET", target.offset("labels"))

    def hydrate(self, result):
        return list(result.content or [])


class PullLabelledNodesJob(Job):

    def __init__(self, label, config, key=None, value=None):
        target = Target("/label", label, "nodes")
        if key is not None:
            target = Target("%s?%s=%s" % (target.uri_string, quote(key, safe=""),
                                          quote(json_dumps(value), safe="")))
        Job.__init__(self, "GET", target)
        self.config = config

    def hydrate(self, result):
        return [hydrate_node(node, self.config) for node in result.content or []]


class AddToIndexJob(Job):

    def __init__(self, kind, index, entity, key, value, config):
        body = {"uri": entity_uri(entity, kind, config), "key": key, "value": value}
        Job.__init__(self, "POST", Target("/index", kind, index), body)
        self.config = config
        self.entity = kind, argument(entity)

    def hydrate(self, result):
        return hydrate(result.content, self.config)

    def subject(self, reference):
        return self.entity


class PullIndexJob(Job):

    def __init__(self, kind, index, key, value, config):
        Job.__init__(self, "GET", Target("/index", kind, index, key, value))
        self.config = config

    def hydrate(self, result):
        return hydrate(result.content or [], self.config)


class RemoveFromIndexJob(Job):

    def __init__(self, kind, index, entity, config, key=None, value=None):
        entity = argument(entity)
        if isinstance(entity, Ref):
            raise InvalidReferenceError("Index entries can only be removed "
                                        "for existing entities")
        offsets = [kind, index]
        if key is not None:
            offsets.append(key)
            if value is not None:
                offsets.append(value)
        offsets.append(entity_id(entity.value, config))
        Job.__init__(self, "DELETE", Target("/index", *offsets))

    def hydrate(self, result):
        return None


class CypherJob(Job):
    """ Raw Cypher query. References within the parameter map are
    replaced by back-references for the server to bind; the statement
    text itself is never altered.
    """

    def __init__(self, statement, parameters, config, raw=False):
        body = {"query": str(statement)}
        if parameters:
            body["params"] = {key: self._parameter(value)
                              for key, value in dict(parameters).items()}
        Job.__init__(self, "POST", Target("/cypher"), body)
        self.config = config
        self.raw = raw

    @classmethod
    def _parameter(cls, value):
        if isinstance(value, (list, tuple)):
            return [cls._parameter(item) for item in value]
        value = argument(value)
        if isinstance(value, Literal):
            return value.value
        elif value.reference.is_group:
            return ["{%d}" % slot for slot in value.reference.slots]
        else:
            return "{%d}" % value.slot

    def hydrate(self, result):
        if self.raw:
            return result.content
        return hydrate_rows(result.content or {}, self.config)


class CreateSchemaIndexJob(Job):

    def __init__(self, label, keys):
        Job.__init__(self, "POST", Target("/schema/index", label), {"property_keys": list(keys)})


class PullSchemaIndexesJob(Job):

    def __init__(self, label):
        Job.__init__(self, "GET", Target("/schema/index", label))


class DropSchemaIndexJob(Job):

    def __init__(self, label, key):
        Job.__init__(self, "DELETE", Target("/schema/index", label, key))

    def hydrate(self, result):
        return None


class CreateUniquenessConstraintJob(Job):

    def __init__(self, label, keys):
        Job.__init__(self, "POST", Target("/schema/constraint", label, "uniqueness"),
                     {"property_keys": list(keys)})


class PullUniquenessConstraintsJob(Job):

    def __init__(self, label, key=None):
        offsets = (label, "uniqueness") + ((key,) if key else ())
        Job.__init__(self, "GET", Target("/schema/constraint", *offsets))


class DropUniquenessConstraintJob(Job):

    def __init__(self, label, key):
        Job.__init__(self, "DELETE", Target("/schema/constraint", label, "uniqueness", key))

    def hydrate(self, result):
        return None


def cross_product(starts, type, ends, properties, config):
    """ Encode one relationship job per (start, end) pair, iterating
    over `starts` in the outer loop.
    """
    return [CreateRelationshipJob(start, type, end, properties, config)
            for start in starts for end in ends]
