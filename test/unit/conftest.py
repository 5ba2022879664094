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


import re
from copy import deepcopy
from json import loads as json_loads
from urllib.parse import unquote, urlsplit, parse_qsl

from packaging.version import Version
from pytest import fixture

from seraph import Graph
from seraph.batch.jobs import JobResult
from seraph.errors import Neo4jError


ENDPOINT = "http://localhost:7474"
BASE = "/db/data"
BACK_REFERENCE = re.compile(r"\{(\d+)\}")


def error(status, exception, message):
    return status, {"message": message, "exception": exception,
                    "fullname": "org.neo4j.server.rest.web.%s" % exception}, None


class FakeServer(object):
    """ In-memory stand-in for the Neo4j REST service, covering the
    endpoints used by seraph. Batches are executed atomically: if any
    job fails, all changes made by the batch are rolled back and the
    request as a whole fails, as with a real server.

    Setting `partial` makes the batch endpoint report per-job failures
    in the response instead, as older servers in streaming mode do.
    """

    def __init__(self):
        self.nodes = {}
        self.labels = {}
        self.relationships = {}
        self.indexes = {}
        self.schema_indexes = {}
        self.constraints = {}
        self.next_node_id = 0
        self.next_relationship_id = 0
        self.requests = []
        self.batches = []
        self.queries = {}
        self.partial = False
        self.closed = False
        self.version = "3.5.12"

    # transport interface

    def request(self, method, path, body=None):
        self.requests.append((method, path, body))
        status, content, location = self.handle(method, path, body)
        if status >= 400:
            raise Neo4jError.hydrate(content, status)
        return JobResult(None, BASE + path, status, location, content)

    def execute(self, jobs):
        documents = [dict(job, id=i) for i, job in enumerate(jobs)]
        self.batches.append(documents)
        snapshot = self._snapshot()
        locations = {}
        results = []
        for document in documents:
            to = self._substitute(document["to"], locations)
            body = self._substitute(document.get("body"), locations)
            status, content, location = self.handle(document["method"], to, body)
            if status >= 400 and not self.partial:
                self._restore(snapshot)
                raise Neo4jError.hydrate(content, 500)
            locations[document["id"]] = location
            result = {"id": document["id"], "from": to, "status": status}
            if content is not None:
                result["body"] = content
            if location is not None:
                result["location"] = location
            results.append(result)
        return results

    def server_version(self):
        return Version(self.version)

    def close(self):
        self.closed = True

    # helpers

    def _snapshot(self):
        return deepcopy((self.nodes, self.labels, self.relationships, self.indexes,
                         self.next_node_id, self.next_relationship_id))

    def _restore(self, snapshot):
        (self.nodes, self.labels, self.relationships, self.indexes,
         self.next_node_id, self.next_relationship_id) = snapshot

    @classmethod
    def _substitute(cls, value, locations):
        if isinstance(value, str):
            return BACK_REFERENCE.sub(lambda m: locations.get(int(m.group(1))) or m.group(0),
                                      value)
        elif isinstance(value, list):
            return [cls._substitute(item, locations) for item in value]
        elif isinstance(value, dict):
            return {key: cls._substitute(item, locations) for key, item in value.items()}
        else:
            return value

    @classmethod
    def node_uri(cls, node_id):
        return "%s%s/node/%d" % (ENDPOINT, BASE, node_id)

    @classmethod
    def relationship_uri(cls, rel_id):
        return "%s%s/relationship/%d" % (ENDPOINT, BASE, rel_id)

    def node_document(self, node_id):
        uri = self.node_uri(node_id)
        return {
            "self": uri,
            "data": dict(self.nodes[node_id]),
            "properties": uri + "/properties",
            "labels": uri + "/labels",
            "outgoing_relationships": uri + "/relationships/out",
            "incoming_relationships": uri + "/relationships/in",
            "all_relationships": uri + "/relationships/all",
            "metadata": {"id": node_id, "labels": list(self.labels[node_id])},
        }

    def relationship_document(self, rel_id):
        rel = self.relationships[rel_id]
        uri = self.relationship_uri(rel_id)
        return {
            "self": uri,
            "start": self.node_uri(rel["start"]),
            "end": self.node_uri(rel["end"]),
            "type": rel["type"],
            "data": dict(rel["data"]),
            "properties": uri + "/properties",
            "metadata": {"id": rel_id, "type": rel["type"]},
        }

    def create_node(self, **properties):
        node_id = self.next_node_id
        self.next_node_id += 1
        self.nodes[node_id] = dict(properties)
        self.labels[node_id] = []
        return node_id

    def create_relationship(self, start, type, end, **properties):
        rel_id = self.next_relationship_id
        self.next_relationship_id += 1
        self.relationships[rel_id] = {"start": start, "end": end, "type": type,
                                      "data": dict(properties)}
        return rel_id

    # request handling

    def handle(self, method, path, body):
        if path.startswith(ENDPOINT):
            path = path[len(ENDPOINT):]
        if path.startswith(BASE):
            path = path[len(BASE):]
        parsed = urlsplit(path)
        segments = [unquote(segment) for segment in parsed.path.strip("/").split("/")]
        query = dict(parse_qsl(parsed.query))
        route = segments[0] if segments else ""
        handler = getattr(self, "_%s_%s" % (method.lower(), route or "root"), None)
        if handler is None:
            return error(404, "NotFoundException", "No handler for %s %s" % (method, path))
        return handler(segments[1:], body, query)

    def _get_root(self, segments, body, query):
        return 200, {"neo4j_version": self.version, "node": ENDPOINT + BASE + "/node",
                     "batch": ENDPOINT + BASE + "/batch"}, None

    def _node(self, segments):
        try:
            node_id = int(segments[0])
        except (IndexError, ValueError):
            return None
        return node_id if node_id in self.nodes else None

    def _node_not_found(self, segments):
        return error(404, "NodeNotFoundException",
                     "Cannot find node with id [%s] in database." % (segments[:1] or ["?"])[0])

    def _post_node(self, segments, body, query):
        if not segments or segments == [""]:
            node_id = self.create_node(**(body or {}))
            return 201, self.node_document(node_id), self.node_uri(node_id)
        node_id = self._node(segments)
        if node_id is None:
            return self._node_not_found(segments)
        if segments[1:] == ["relationships"]:
            matched = re.search(r"/node/(\d+)$", body.get("to") or "")
            if not matched or int(matched.group(1)) not in self.nodes:
                return error(400, "StartNodeNotFoundException",
                             "Cannot find end node %r" % body.get("to"))
            rel_id = self.create_relationship(node_id, body["type"], int(matched.group(1)),
                                              **(body.get("data") or {}))
            return 201, self.relationship_document(rel_id), self.relationship_uri(rel_id)
        if segments[1:] == ["labels"]:
            labels = body if isinstance(body, list) else [body]
            for label in labels:
                if not label:
                    return error(400, "BadInputException", "Unable to add label")
                if label not in self.labels[node_id]:
                    self.labels[node_id].append(label)
            return 204, None, None
        return error(404, "NotFoundException", "Unknown node resource")

    def _get_node(self, segments, body, query):
        node_id = self._node(segments)
        if node_id is None:
            return self._node_not_found(segments)
        rest = segments[1:]
        if not rest:
            return 200, self.node_document(node_id), None
        if rest == ["properties"]:
            return 200, dict(self.nodes[node_id]), None
        if rest == ["labels"]:
            return 200, list(self.labels[node_id]), None
        if rest[0] == "relationships":
            direction = rest[1]
            type = rest[2] if len(rest) > 2 else None
            found = []
            for rel_id, rel in sorted(self.relationships.items()):
                if type and rel["type"] != type:
                    continue
                if ((direction in ("all", "out") and rel["start"] == node_id) or
                        (direction in ("all", "in") and rel["end"] == node_id)):
                    found.append(self.relationship_document(rel_id))
            return 200, found, None
        return error(404, "NotFoundException", "Unknown node resource")

    def _put_node(self, segments, body, query):
        node_id = self._node(segments)
        if node_id is None:
            return self._node_not_found(segments)
        rest = segments[1:]
        if rest == ["properties"]:
            self.nodes[node_id] = dict(body or {})
            return 204, None, None
        if len(rest) == 2 and rest[0] == "properties":
            self.nodes[node_id][rest[1]] = body
            return 204, None, None
        return error(404, "NotFoundException", "Unknown node resource")

    def _delete_node(self, segments, body, query):
        node_id = self._node(segments)
        if node_id is None:
            return self._node_not_found(segments)
        rest = segments[1:]
        if not rest:
            for rel in self.relationships.values():
                if node_id in (rel["start"], rel["end"]):
                    return error(409, "ConstraintViolationException",
                                 "The node with id %d cannot be deleted. Check that the node is "
                                 "orphaned before deletion." % node_id)
            del self.nodes[node_id]
            del self.labels[node_id]
            return 204, None, None
        if len(rest) == 2 and rest[0] == "labels":
            if rest[1] in self.labels[node_id]:
                self.labels[node_id].remove(rest[1])
            return 204, None, None
        return error(404, "NotFoundException", "Unknown node resource")

    def _relationship(self, segments):
        try:
            rel_id = int(segments[0])
        except (IndexError, ValueError):
            return None
        return rel_id if rel_id in self.relationships else None

    def _get_relationship(self, segments, body, query):
        rel_id = self._relationship(segments)
        if rel_id is None:
            return error(404, "RelationshipNotFoundException", "Relationship not found")
        return 200, self.relationship_document(rel_id), None

    def _put_relationship(self, segments, body, query):
        rel_id = self._relationship(segments)
        if rel_id is None:
            return error(404, "RelationshipNotFoundException", "Relationship not found")
        self.relationships[rel_id]["data"] = dict(body or {})
        return 204, None, None

    def _delete_relationship(self, segments, body, query):
        rel_id = self._relationship(segments)
        if rel_id is None:
            return error(404, "RelationshipNotFoundException", "Relationship not found")
        del self.relationships[rel_id]
        return 204, None, None

    def _get_label(self, segments, body, query):
        label = segments[0]
        found = []
        for node_id in sorted(self.nodes):
            if label not in self.labels[node_id]:
                continue
            if query and any(self.nodes[node_id].get(key) != json_loads(value)
                             for key, value in query.items()):
                continue
            found.append(self.node_document(node_id))
        return 200, found, None

    def _post_index(self, segments, body, query):
        kind, name = segments[0], segments[1]
        matched = re.search(r"/%s/(\d+)$" % kind, body.get("uri") or "")
        entities = self.nodes if kind == "node" else self.relationships
        if not matched or int(matched.group(1)) not in entities:
            return error(404, "NotFoundException", "Cannot index missing entity")
        entity_id = int(matched.group(1))
        entry = (body["key"], body["value"], entity_id)
        self.indexes.setdefault((kind, name), [])
        if entry not in self.indexes[(kind, name)]:
            self.indexes[(kind, name)].append(entry)
        if kind == "node":
            document = self.node_document(entity_id)
        else:
            document = self.relationship_document(entity_id)
        document["indexed"] = "%s%s/index/%s/%s/%s/%s/%d" % (ENDPOINT, BASE, kind, name,
                                                          body["key"], body["value"], entity_id)
        return 201, document, document["indexed"]

    def _get_index(self, segments, body, query):
        kind, name, key, value = segments[:4]
        found = []
        for entry_key, entry_value, entity_id in self.indexes.get((kind, name), []):
            if entry_key == key and str(entry_value) == value:
                if kind == "node":
                    found.append(self.node_document(entity_id))
                else:
                    found.append(self.relationship_document(entity_id))
        return 200, found, None

    def _delete_index(self, segments, body, query):
        kind, name = segments[0], segments[1]
        rest = segments[2:]
        entity_id = int(rest[-1])
        key = rest[0] if len(rest) > 1 else None
        value = rest[1] if len(rest) > 2 else None
        self.indexes[(kind, name)] = [
            (k, v, i) for k, v, i in self.indexes.get((kind, name), [])
            if not (i == entity_id and (key is None or k == key) and
                    (value is None or str(v) == value))
        ]
        return 204, None, None

    def _post_cypher(self, segments, body, query):
        statement = body["query"]
        parameters = body.get("params") or {}
        try:
            handler = self.queries[statement]
        except KeyError:
            return 200, {"columns": [], "data": []}, None
        return handler(self, parameters)

    def _post_schema(self, segments, body, query):
        if segments[0] == "index":
            label = segments[1]
            existing = self.schema_indexes.setdefault(label, [])
        else:
            label = segments[1]
            existing = self.constraints.setdefault(label, [])
        keys = body["property_keys"]
        if keys in existing:
            return error(409, "ConstraintViolationException", "Already exists")
        existing.append(keys)
        document = {"label": label, "property_keys": keys}
        if segments[0] == "constraint":
            document["type"] = "UNIQUENESS"
        return 200, document, None

    def _get_schema(self, segments, body, query):
        label = segments[1]
        if segments[0] == "index":
            return 200, [{"label": label, "property_keys": keys}
                         for keys in self.schema_indexes.get(label, [])], None
        key = segments[3] if len(segments) > 3 else None
        return 200, [{"label": label, "property_keys": keys, "type": "UNIQUENESS"}
                     for keys in self.constraints.get(label, [])
                     if key is None or keys == [key]], None

    def _delete_schema(self, segments, body, query):
        label = segments[1]
        key = segments[-1]
        if segments[0] == "index":
            existing = self.schema_indexes.get(label, [])
        else:
            existing = self.constraints.get(label, [])
        if [key] not in existing:
            return error(404, "NotFoundException", "No such schema entry")
        existing.remove([key])
        return 204, None, None


def delete_relationships_query(server, parameters):
    ids = parameters["ids"]
    for rel_id, rel in list(server.relationships.items()):
        if rel["start"] in ids or rel["end"] in ids:
            del server.relationships[rel_id]
    return 200, {"columns": [], "data": []}, None


@fixture
def server():
    fake = FakeServer()
    fake.queries["MATCH (n)-[r]-() WHERE id(n) IN {ids} DELETE r"] = delete_relationships_query
    return fake


@fixture
def graph(server, monkeypatch):
    monkeypatch.delenv("NEO4J_URI", raising=False)
    monkeypatch.delenv("NEO4J_AUTH", raising=False)
    monkeypatch.delenv("NEO4J_SECURE", raising=False)
    monkeypatch.delenv("NEO4J_VERIFY", raising=False)
    return Graph(transport=server)
