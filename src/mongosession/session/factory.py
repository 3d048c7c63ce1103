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
"""Builds a session store from configuration."""

from __future__ import annotations

from mongosession.config.properties.session import SessionStoreProperties
from mongosession.core.config import Config
from mongosession.session.adapters.mongodb import MongoSessionStore
from mongosession.session.options import SessionOptions
from mongosession.session.serializer import serializer_for


async def create_session_store(config: Config) -> MongoSessionStore:
    """Connect a :class:`MongoSessionStore` configured from ``mongosession.store.*``."""
    props = config.bind(SessionStoreProperties)
    if not props.keys:
        raise ValueError("mongosession.store.keys must contain at least one hash key")

    options = SessionOptions(
        path=props.path,
        domain=props.domain,
        max_age=props.max_age,
        secure=props.secure,
        http_only=props.http_only,
        same_site=props.same_site,
    )
    return await MongoSessionStore.connect(
        props.uri,
        props.database,
        props.table,
        props.min_pool_size,
        props.max_pool_size,
        *props.keys,
        options=options,
        default_max_age=props.default_max_age,
        serializer=serializer_for(props.serializer),
    )
