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
"""Outbound ports — the contracts the session store is written against."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mongosession.session.session import Session


@runtime_checkable
class SessionStore(Protocol):
    """Storage contract consumed by request handlers and the middleware.

    ``get`` coalesces lookups through the per-request registry, ``new``
    always builds a fresh instance, and ``save`` persists a session and
    writes its cookie onto the response.
    """

    async def get(self, request: Any, name: str) -> Session: ...

    async def new(self, request: Any, name: str) -> Session: ...

    async def save(self, request: Any, response: Any, session: Session) -> None: ...


@runtime_checkable
class Codec(Protocol):
    """Converts a session id to and from a tamper-evident cookie value.

    ``decode`` raises on any verification failure.
    """

    def encode(self, name: str, value: str) -> str: ...

    def decode(self, name: str, value: str) -> str: ...


@runtime_checkable
class SessionSerializer(Protocol):
    """Encodes session values to the stored payload and back."""

    def dumps(self, values: dict[Any, Any]) -> bytes: ...

    def loads(self, data: bytes) -> dict[Any, Any]: ...
