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


from pytest import raises

from seraph import CommitFailedError, UnsupportedInTransactionError


def test_can_create_and_relate_in_one_batch(graph, clean):
    tx = graph.batch()
    bob = tx.save({"name": "Bob"})
    friends = tx.save([{"name": "Tim"}, {"name": "Jan"}])
    knows = tx.relate(bob, "KNOWS", friends)
    tx.label([bob, friends], clean)
    results = tx.commit()
    assert results[bob]["name"] == "Bob"
    assert [friend["name"] for friend in results[friends]] == ["Tim", "Jan"]
    assert [rel["end"] for rel in results[knows]] == [friend["id"] for friend in results[friends]]
    assert {node["name"] for node in graph.nodes_with_label(clean)} == {"Bob", "Tim", "Jan"}


def test_cross_product_of_groups(graph, clean):
    tx = graph.batch()
    starts = tx.save([{"name": "A"}, {"name": "B"}])
    ends = tx.save([{"name": "X"}, {"name": "Y"}, {"name": "Z"}])
    rels = tx.relate(starts, "LINKS", ends)
    tx.label([starts, ends], clean)
    results = tx.commit()
    assert [[rel["end"] for rel in row] for row in results[rels]] == \
        [[node["id"] for node in results[ends]]] * 2


def test_failed_batch_leaves_no_trace(graph, clean):
    tx = graph.batch()
    ghost = tx.save({"name": "Ghost"})
    tx.label(ghost, clean)
    tx.delete(2 ** 40)
    with raises(CommitFailedError):
        tx.commit()
    assert graph.nodes_with_label(clean) == []


def test_query_can_use_reference(graph, clean):
    tx = graph.batch()
    alice = tx.save({"name": "Alice"})
    tx.label(alice, clean)
    names = tx.query("START n=node({node}) RETURN n.name", {"node": alice})
    results = tx.commit()
    assert results[names] == ["Alice"]


def test_save_with_label(graph, clean):
    alice = graph.save({"name": "Alice"}, label=clean)
    assert graph.read_labels(alice) == [clean]
    with raises(UnsupportedInTransactionError):
        graph.batch().save({"name": "Bob"}, label=clean)


def test_forced_delete(graph, clean):
    a, b = graph.save([{"name": "A"}, {"name": "B"}], label=clean)
    graph.relate(a, "KNOWS", b)
    graph.delete(a, force=True)
    assert [node["name"] for node in graph.nodes_with_label(clean)] == ["B"]
