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


__all__ = ["get_metadata", "VERSION"]


VERSION = "1.0.0"


def get_metadata():
    """ Return the packaging metadata for this distribution.
    """
    return {
        "name": "seraph",
        "version": VERSION,
        "description": "Python client for the Neo4j REST API with atomic batching",
        "author": "Nigel Small",
        "author_email": "technige@nige.tech",
        "license": "Apache License, Version 2.0",
        "keywords": "neo4j graph database rest batch transaction",
        "classifiers": [
            "Development Status :: 5 - Production/Stable",
            "Intended Audience :: Developers",
            "License :: OSI Approved :: Apache Software License",
            "Operating System :: OS Independent",
            "Programming Language :: Python :: 3",
            "Topic :: Database",
            "Topic :: Software Development",
        ],
    }
