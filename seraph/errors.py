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


__all__ = ["Neo4jError", "ClientError", "DatabaseError", "TransientError",
           "ConnectionUnavailable"]


def _split_code(code):
    if not isinstance(code, str):
        raise ValueError("Status code must be a string, not %r" % (code,))
    parts = code.split(".")
    if len(parts) != 4 or parts[0] != "Neo":
        raise ValueError("Invalid status code %r" % code)
    return parts[1:]


class Neo4jError(Exception):
    """ Exception class for modelling errors reported by a Neo4j
    server.

    Instances are automatically created as the most specific subclass
    for the classification part of the status code, so a code of
    ``Neo.ClientError.Schema.ConstraintViolation`` yields a
    :class:`.ClientError`.
    """

    #: HTTP status of the response that carried this error, if any
    status = None

    #: Name of the server-side exception, for the legacy REST format
    exception = None

    @classmethod
    def hydrate(cls, data, status=None):
        """ Build an error from a server error document.

        Both the legacy REST form (``message``, ``exception``,
        ``fullname``) and the form carrying an ``errors`` list of
        ``{code, message}`` are understood. Where no status code is
        supplied, one is synthesised from the HTTP status and the
        exception name.
        """
        code = None
        exception = None
        if isinstance(data, dict):
            message = data.get("message")
            exception = data.get("exception")
            errors = data.get("errors")
            if errors:
                code = errors[0].get("code")
                message = message or errors[0].get("message")
        else:
            message = data
        if code is None:
            if status is not None and 400 <= status < 500:
                classification = "ClientError"
            else:
                classification = "DatabaseError"
            code = "Neo.%s.General.%s" % (classification, exception or "UnknownError")
        if not message:
            message = "Server responded with HTTP %s" % status
        inst = cls(message, code)
        inst.status = status
        inst.exception = exception
        return inst

    def __new__(cls, message, code):
        if cls is Neo4jError:
            classification, _, _ = _split_code(code)
            cls = _ERROR_CLASSES.get(classification, Neo4jError)
        return super(Neo4jError, cls).__new__(cls, message, code)

    def __init__(self, message, code):
        super(Neo4jError, self).__init__(message)
        self.code = code
        self.classification, self.category, self.title = _split_code(code)

    def __str__(self):
        return "[%s.%s] %s" % (self.category, self.title, super(Neo4jError, self).__str__())

    @property
    def message(self):
        return self.args[0]


class ClientError(Neo4jError):
    """ The client sent a bad request; retrying it unchanged will fail
    again.
    """


class DatabaseError(Neo4jError):
    """ The database failed to service the request.
    """


class TransientError(Neo4jError):
    """ The database cannot service the request right now.
    """


_ERROR_CLASSES = {
    "ClientError": ClientError,
    "DatabaseError": DatabaseError,
    "TransientError": TransientError,
}


class ConnectionUnavailable(Exception):
    """ Raised when a connection to the server cannot be used.
    """
