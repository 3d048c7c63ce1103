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
"""Session payload serializers."""

from __future__ import annotations

import json
import pickle
from typing import Any

from mongosession.kernel.exceptions import SerializationException


class PickleSerializer:
    """Pickle-based payload encoding.

    Reconstructs arbitrary stored value types (custom flash message classes,
    datetimes, sets, ...). Payloads are only ever read back from the store's
    own collection.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def dumps(self, values: dict[Any, Any]) -> bytes:
        try:
            return pickle.dumps(values, protocol=self._protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as exc:
            raise SerializationException(
                f"Cannot serialize session values: {exc}", code="SESSION_ENCODE_FAILED"
            ) from exc

    def loads(self, data: bytes) -> dict[Any, Any]:
        try:
            values = pickle.loads(data)
        except Exception as exc:
            raise SerializationException(
                f"Cannot deserialize session payload: {exc}", code="SESSION_DECODE_FAILED"
            ) from exc
        if not isinstance(values, dict):
            raise SerializationException(
                f"Session payload decoded to {type(values).__name__}, expected dict",
                code="SESSION_DECODE_FAILED",
            )
        return values


class JsonSerializer:
    """JSON payload encoding for sessions holding only JSON-compatible values.

    Supported values are ``str`` keys with ``str``, ``int``, ``float``,
    ``bool``, ``None``, ``list`` and ``dict`` values. Anything JSON would
    silently change (tuples, non-string keys) is rejected on ``dumps``.
    """

    def dumps(self, values: dict[Any, Any]) -> bytes:
        try:
            encoded = json.dumps(values)
        except (TypeError, ValueError) as exc:
            raise SerializationException(
                f"Cannot serialize session values: {exc}", code="SESSION_ENCODE_FAILED"
            ) from exc
        if json.loads(encoded) != values:
            raise SerializationException(
                "Session values do not survive a JSON round-trip; use the pickle serializer",
                code="SESSION_ENCODE_FAILED",
            )
        return encoded.encode("utf-8")

    def loads(self, data: bytes) -> dict[Any, Any]:
        try:
            values = json.loads(data.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SerializationException(
                f"Cannot deserialize session payload: {exc}", code="SESSION_DECODE_FAILED"
            ) from exc
        if not isinstance(values, dict):
            raise SerializationException(
                f"Session payload decoded to {type(values).__name__}, expected dict",
                code="SESSION_DECODE_FAILED",
            )
        return values


def serializer_for(name: str) -> PickleSerializer | JsonSerializer:
    """Return the serializer registered under *name* (``pickle`` or ``json``)."""
    if name == "pickle":
        return PickleSerializer()
    if name == "json":
        return JsonSerializer()
    raise ValueError(f"Unknown session serializer '{name}'; expected 'pickle' or 'json'")
