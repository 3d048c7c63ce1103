# Copyright 2026 Firefly Software Solutions Inc.
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
"""mongosession — server-side HTTP sessions stored in MongoDB.

Only a signed session id travels in the cookie. Import the store from the
adapter package::

    from mongosession.session.adapters.mongodb import MongoSessionStore
"""

from mongosession.session.codec import SecureCookieCodec, codecs_from_pairs
from mongosession.session.middleware import SessionMiddleware
from mongosession.session.options import DEFAULT_MAX_AGE, SessionOptions
from mongosession.session.ports.outbound import Codec, SessionSerializer, SessionStore
from mongosession.session.record import SessionRecord
from mongosession.session.registry import SessionRegistry, get_registry, save_sessions
from mongosession.session.serializer import JsonSerializer, PickleSerializer
from mongosession.session.session import Session

__all__ = [
    "DEFAULT_MAX_AGE",
    "Codec",
    "JsonSerializer",
    "PickleSerializer",
    "SecureCookieCodec",
    "Session",
    "SessionMiddleware",
    "SessionOptions",
    "SessionRecord",
    "SessionRegistry",
    "SessionSerializer",
    "SessionStore",
    "codecs_from_pairs",
    "get_registry",
    "save_sessions",
]
