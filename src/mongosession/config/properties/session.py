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
"""Session store configuration properties."""

from __future__ import annotations

from dataclasses import dataclass, field

from mongosession.core.config import config_properties
from mongosession.session.options import DEFAULT_MAX_AGE


@config_properties(prefix="mongosession.store")
@dataclass
class SessionStoreProperties:
    """Configuration for the MongoDB session store (mongosession.store.*).

    ``keys`` holds hash/block key material, newest first: entries are taken
    in pairs as ``hash_key, block_key``. Use an empty string for a pair
    without encryption.
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "sessions"
    table: str = "sessions"
    min_pool_size: int = 0
    max_pool_size: int = 100
    keys: list[str] = field(default_factory=list)
    serializer: str = "pickle"
    max_age: int = DEFAULT_MAX_AGE
    default_max_age: int = DEFAULT_MAX_AGE
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"
