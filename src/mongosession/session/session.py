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
"""Session — per-request view of server-side session state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mongosession.session.options import SessionOptions

if TYPE_CHECKING:
    from mongosession.session.ports.outbound import SessionStore

FLASHES_KEY = "_flash"


class Session:
    """Holds the values loaded for one cookie name during one request.

    Attributes:
        id: The session identifier; empty until the first successful save.
        values: Arbitrary user data, persisted as an opaque payload.
        options: This session's cookie options (a private copy of the store's).
        is_new: ``True`` unless a matching record was loaded from the store.
    """

    def __init__(
        self,
        store: SessionStore,
        name: str,
        options: SessionOptions | None = None,
        *,
        is_new: bool = True,
    ) -> None:
        self._store = store
        self._name = name
        self.id: str = ""
        self.values: dict[Any, Any] = {}
        self.options = options if options is not None else SessionOptions()
        self.is_new = is_new

    @property
    def name(self) -> str:
        """The cookie name this session is bound to."""
        return self._name

    @property
    def store(self) -> SessionStore:
        return self._store

    def flashes(self, key: str = FLASHES_KEY) -> list[Any]:
        """Return and remove all flash messages stored under *key*."""
        return list(self.values.pop(key, None) or [])

    def add_flash(self, value: Any, key: str = FLASHES_KEY) -> None:
        """Append a flash message under *key*."""
        self.values.setdefault(key, []).append(value)

    async def save(self, request: Any, response: Any) -> None:
        """Persist this session through its store."""
        await self._store.save(request, response, self)

    def __repr__(self) -> str:
        return f"Session(name={self._name!r}, id={self.id!r}, is_new={self.is_new})"
