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
Conversion of Neo4j REST representations into plain client objects.

Nodes are returned as a ``dict`` of their properties with the
server-assigned identity stored under the configured id key.
Relationships are returned as a ``dict`` with the id key plus
``start``, ``end``, ``type`` and ``properties``.
"""


import re


__all__ = ["uri_to_id", "entity_id_in", "is_node", "is_relationship",
           "hydrate_node", "hydrate_relationship", "hydrate", "hydrate_rows"]


TRAILING_ID = re.compile(r"/(\d+)/?$")


def uri_to_id(uri):
    """ Take the numeric identity off the end of an entity URI, or
    return :const:`None` if there is none.
    """
    if not uri:
        return None
    matched = TRAILING_ID.search(uri)
    if not matched:
        return None
    return int(matched.group(1))


def entity_id_in(uri, kind="node"):
    """ Find the identity of the first `kind` entity mentioned in a
    URI, e.g. ``5`` for ``.../node/5/properties``.
    """
    if not uri:
        return None
    matched = re.search(r"/%s/(\d+)" % kind, uri)
    if not matched:
        return None
    return int(matched.group(1))


def is_node(data):
    return (isinstance(data, dict) and "self" in data and "type" not in data and
            isinstance(data.get("data"), dict))


def is_relationship(data):
    return (isinstance(data, dict) and "self" in data and
            all(key in data for key in ("start", "end", "type")) and
            isinstance(data.get("data"), dict))


def hydrate_node(data, config):
    node = dict(data.get("data") or {})
    node[config.id_key] = uri_to_id(data["self"])
    return node


def hydrate_relationship(data, config):
    return {
        config.id_key: uri_to_id(data["self"]),
        "start": uri_to_id(data["start"]),
        "end": uri_to_id(data["end"]),
        "type": data["type"],
        "properties": dict(data.get("data") or {}),
    }


def hydrate(value, config):
    """ Hydrate nodes and relationships found anywhere within a JSON
    value, leaving everything else untouched.
    """
    if is_relationship(value):
        return hydrate_relationship(value, config)
    elif is_node(value):
        return hydrate_node(value, config)
    elif isinstance(value, list):
        return [hydrate(item, config) for item in value]
    else:
        return value


def hydrate_rows(result, config):
    """ Map a Cypher result document of ``columns`` and ``data`` into a
    list of records keyed by column name. Results with a single column
    are flattened into a list of that column's values.
    """
    columns = result.get("columns") or []
    rows = [dict(zip(columns, (hydrate(value, config) for value in row)))
            for row in result.get("data") or []]
    if len(columns) == 1:
        return [row[columns[0]] for row in rows]
    return rows
