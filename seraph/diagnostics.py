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
Console output for batch traffic.

The HTTP transport logs every batch it sends at INFO level, one line
per job (``> {i} METHOD path body``) followed by one line per job
result (``< {i} status body``). Watching the ``seraph`` logger shows
that traffic as it happens, with failed jobs picked out in red::

    >>> from seraph.diagnostics import watch
    >>> watch("seraph.http")

"""


import re
from logging import CRITICAL, ERROR, WARNING, INFO, DEBUG, Formatter, StreamHandler, getLogger
from sys import stderr


__all__ = ["BatchFormatter", "Watcher", "watch"]


JOB_LINE = re.compile(r"^> (\{\d+\}) ")
RESULT_LINE = re.compile(r"^< \{\d+\} (\d{3})\b")

LEVELS = {0: INFO, -1: WARNING, -2: ERROR}


class BatchFormatter(Formatter):
    """ Colour formatter for batch traffic. Jobs are shown in white with
    their batch slot highlighted, successful job results in cyan and
    failed job results in red.
    """

    def format(self, record):
        from pansi import ansi
        s = super(BatchFormatter, self).format(record)
        message = record.getMessage()
        if record.levelno >= CRITICAL:
            return "{RED}{}{_}".format(s, **ansi)
        elif record.levelno >= ERROR:
            return "{red}{}{_}".format(s, **ansi)
        elif record.levelno >= WARNING:
            return "{yellow}{}{_}".format(s, **ansi)
        job = JOB_LINE.match(message)
        if job:
            slot = job.group(1)
            s = s.replace("> %s " % slot, "> {cyan}{slot}{white} ".format(slot=slot, **ansi), 1)
            return "{white}{}{_}".format(s, **ansi)
        result = RESULT_LINE.match(message)
        if result and int(result.group(1)) >= 400:
            return "{red}{}{_}".format(s, **ansi)
        elif result or record.levelno == DEBUG:
            return "{cyan}{}{_}".format(s, **ansi)
        elif record.levelno == INFO:
            return "{white}{}{_}".format(s, **ansi)
        else:
            return s


class Watcher(object):
    """ Log watcher for monitoring batch and transport activity, e.g.
    ``Watcher("seraph.http")`` to see every job sent to the server.
    """

    def __init__(self, *logger_names):
        super(Watcher, self).__init__()
        self.logger_names = logger_names
        self.loggers = [getLogger(name) for name in self.logger_names]
        self.formatter = BatchFormatter("%(asctime)s  %(message)s")
        self.handlers = {}

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def start(self, verbosity=0, out=stderr):
        self.stop()
        level = DEBUG if verbosity > 0 else LEVELS.get(verbosity, CRITICAL)
        handler = StreamHandler(out)
        handler.setFormatter(self.formatter)
        for logger in self.loggers:
            self.handlers[logger.name] = handler
            logger.addHandler(handler)
            logger.setLevel(level)

    def stop(self):
        for logger in self.loggers:
            handler = self.handlers.pop(logger.name, None)
            if handler is not None:
                logger.removeHandler(handler)


def watch(logger_name, verbosity=0, out=stderr):
    """ Start watching a logger, returning the :class:`.Watcher`.

    :param verbosity: 1 for debug, 0 for batch traffic, -1 for warnings
        and below that for errors only
    """
    watcher = Watcher(logger_name)
    watcher.start(verbosity, out)
    return watcher
