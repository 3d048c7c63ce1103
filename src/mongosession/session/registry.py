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
"""Per-request session registry.

Coalesces lookups so that every ``store.get(request, name)`` within one
request returns the same :class:`Session`, and saves all of them at once
when the response is ready.
"""

from __future__ import annotations

import logging
from typing import Any

from mongosession.kernel.exceptions import SessionLoadException, SessionStoreException
from mongosession.session.ports.outbound import SessionStore
from mongosession.session.session import Session

_logger = logging.getLogger(__name__)

_STATE_ATTR = "mongosession_registry"


class SessionRegistry:
    """Sessions loaded during a single request, keyed by cookie name."""

    def __init__(self, request: Any) -> None:
        self._request = request
        self._sessions: dict[str, tuple[Session, SessionLoadException | None]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, store: SessionStore, name: str) -> Session:
        """Return the registered session for *name*, loading it on first use.

        A load failure is cached with its session and re-raised on every
        lookup, so each caller observes the same outcome.
        """
        entry = self._sessions.get(name)
        if entry is None:
            error: SessionLoadException | None = None
            try:
                session = await store.new(self._request, name)
            except SessionLoadException as exc:
                session, error = exc.session, exc
            entry = (session, error)
            self._sessions[name] = entry

        session, error = entry
        if error is not None:
            raise error
        return session

    async def save_all(self, response: Any) -> None:
        """Save every registered session, raising the first failure afterwards."""
        first_error: SessionStoreException | None = None
        for name, (session, _) in self._sessions.items():
            try:
                await session.store.save(self._request, response, session)
            except SessionStoreException as exc:
                _logger.error("Failed to save session '%s': %s", name, exc)
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error


def get_registry(request: Any) -> SessionRegistry:
    """Return the registry attached to *request*, creating it on first use."""
    registry: SessionRegistry | None = getattr(request.state, _STATE_ATTR, None)
    if registry is None:
        registry = SessionRegistry(request)
        setattr(request.state, _STATE_ATTR, registry)
    return registry


async def save_sessions(request: Any, response: Any) -> None:
    """Save all sessions registered for *request* onto *response*."""
    await get_registry(request).save_all(response)
