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


from json import dumps as json_dumps, loads as json_loads
from logging import getLogger

from packaging.version import Version
from urllib3 import HTTPConnectionPool, HTTPSConnectionPool, make_headers
from urllib3.exceptions import HTTPError

from seraph.batch.jobs import JobResult
from seraph.config import http_user_agent
from seraph.errors import ConnectionUnavailable, Neo4jError


__all__ = ["HTTP"]


log = getLogger(__name__)


class HTTP(object):
    """ Transport for the Neo4j REST API, backed by a pool of urllib3
    connections. Instances are safe to share between threads, and so
    between any number of concurrent transactions.
    """

    base_path = "/db/data"

    def __init__(self, config, user_agent=None):
        self.config = config
        self.headers = make_headers(basic_auth=":".join(config.auth),
                                    user_agent=(user_agent or http_user_agent()))
        self.headers["Accept"] = "application/json; charset=UTF-8"
        self.http_pool = None
        self.__closed = False
        self._make_pool(config)

    def _make_pool(self, config):
        if config.secure:
            from ssl import CERT_NONE, CERT_REQUIRED
            from certifi import where as cert_where
            self.http_pool = HTTPSConnectionPool(
                host=config.host,
                port=config.port_number,
                maxsize=config.max_connections,
                block=True,
                cert_reqs=CERT_REQUIRED if config.verify else CERT_NONE,
                ca_certs=cert_where()
            )
        else:
            self.http_pool = HTTPConnectionPool(
                host=config.host,
                port=config.port_number,
                maxsize=config.max_connections,
                block=True,
            )

    def close(self):
        self.http_pool.close()
        self.__closed = True

    @property
    def closed(self):
        return self.__closed

    def _path(self, path):
        if path.startswith(self.base_path + "/"):
            return path
        return "%s/%s" % (self.base_path, path.lstrip("/"))

    @classmethod
    def _content(cls, r):
        if not r.data:
            return None
        text = r.data.decode("utf-8")
        try:
            return json_loads(text)
        except ValueError:
            return text

    def _send(self, method, path, body=None):
        url = self._path(path)
        headers = dict(self.headers)
        data = None
        if body is not None:
            data = json_dumps(body)
            headers["Content-Type"] = "application/json"
        try:
            r = self.http_pool.request(method=method, url=url, headers=headers, body=data)
        except HTTPError as error:
            raise ConnectionUnavailable("Failed to send %s request to %s" % (method, url)) from error
        content = self._content(r)
        if not 200 <= r.status < 300:
            log.debug("< %s %s", r.status, content)
            raise Neo4jError.hydrate(content, r.status)
        return r, content

    def request(self, method, path, body=None):
        """ Send a single request and return a :class:`.JobResult`.

        :raises Neo4jError: if the server responds with a non-2xx status
        :raises ConnectionUnavailable: if the server cannot be reached
        """
        log.debug("> %s %s", method, path)
        r, content = self._send(method, path, body)
        result = JobResult(None, self._path(path), r.status, r.headers.get("Location"), content)
        log.debug("< %s", result)
        return result

    def execute(self, jobs):
        """ Post a list of jobs to the batch endpoint and return the
        ordered list of per-job result documents.

        The server executes the whole batch in one transaction, so a
        failing job causes the request as a whole to fail with a
        :class:`.Neo4jError`.
        """
        num_jobs = len(jobs)
        plural = "" if num_jobs == 1 else "s"
        log.info("> Sending batch request with %s job%s", num_jobs, plural)
        data = []
        for i, job in enumerate(jobs):
            log.info("> {%s} %s", i, job)
            data.append(dict(job, id=i))
        _, content = self._send("POST", "/batch", data)
        log.info("< Received batch response for %s job%s", num_jobs, plural)
        if content is None:
            return []
        if not isinstance(content, list):
            raise Neo4jError.hydrate({"message": "Unexpected batch response %r" % (content,)})
        for document in content:
            log.info("< %s", JobResult.hydrate(document))
        return content

    def server_version(self):
        """ Fetch the version of the remote Neo4j server.

        :rtype: :class:`packaging.version.Version`
        """
        metadata = self.request("GET", "/").content
        return Version(metadata["neo4j_version"])
