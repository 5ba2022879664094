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

from seraph.batch.error import InvalidReferenceError
from seraph.batch.jobs import entity_id
from seraph.batch.reference import reshape
from seraph.batch.safe import safe_batch
from seraph.batch.transaction import Transaction
from seraph.config import ClientConfig
from seraph.http import HTTP
from seraph.operations import Operations
from seraph.schema import Schema


__all__ = ["Graph"]


log = getLogger(__name__)


class Graph(Operations):
    """ Client for a Neo4j graph database exposed over the REST API.

    Operations on a graph are performed immediately, one request per
    node or relationship involved. To perform a series of operations
    atomically, in a single request, use :meth:`.batch`.

    :param config: a :class:`.ClientConfig`, URI string or dictionary
        of settings; see :class:`.ClientConfig`
    :param transport: object used to talk to the server; by default an
        :class:`.HTTP` transport built from the config
    :param settings: individual config overrides
    """

    def __init__(self, config=None, transport=None, **settings):
        self.config = ClientConfig(config, **settings)
        self.transport = transport or HTTP(self.config)
        self.schema = Schema(self)

    def __repr__(self):
        return "%s(%r)" % (self.__class__.__name__, self.config.uri)

    def _check_reference(self, reference):
        raise InvalidReferenceError("%r can only be used within the transaction "
                                    "that created it" % (reference,))

    def _dispatch(self, jobs, shape, callback=None):
        value = reshape([self._run(job) for job in jobs], shape)
        if callback is not None:
            callback(value)
        return value

    def _run(self, job):
        result = self.transport.request(job.method, job.target.uri_string, job.body)
        return job.hydrate(result)

    def _save_labelled(self, obj, labels, key=None, value=None, callback=None):

        def record(tx):
            saved = tx.save(obj, key, value)
            tx.label(saved, labels)
            return saved

        result = safe_batch(self, record)
        if callback is not None:
            callback(result)
        return result

    def _delete_forced(self, node, callback=None):
        ids = [entity_id(arg.value, self.config) for arg in self._elements(node)[0]]

        def record(tx):
            if ids:
                tx.query("MATCH (n)-[r]-() WHERE id(n) IN {ids} DELETE r", {"ids": ids})
            return tx.delete(node)

        value = safe_batch(self, record)
        if callback is not None:
            callback(value)
        return value

    def batch(self, record=None, callback=None):
        """ Begin a new :class:`.Transaction`.

        Called without arguments, the transaction is returned for the
        caller to record operations on and commit::

            >>> tx = graph.batch()
            >>> bob = tx.save({"name": "Bob"})
            >>> tx.commit()[bob]
            {'name': 'Bob', 'id': 17}

        Called with a `record` function, that function is passed the
        transaction, which is then committed as soon as it returns,
        with `callback` passed on to :meth:`.Transaction.commit`::

            >>> graph.batch(lambda tx: tx.save({"name": "Tim"}))[0]
            {'name': 'Tim', 'id': 18}

        """
        tx = Transaction(self)
        if record is None:
            if callback is not None:
                raise TypeError("A callback can only be given along with a record function")
            return tx
        record(tx)
        return tx.commit(callback)

    def begin_transaction(self):
        """ Begin a new :class:`.Transaction`.
        """
        return Transaction(self)

    @property
    def server_version(self):
        """ Version of the remote Neo4j server.
        """
        return self.transport.server_version()

    def close(self):
        self.transport.close()
