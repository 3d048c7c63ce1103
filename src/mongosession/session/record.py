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
"""SessionRecord — the persisted form of a session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class SessionRecord:
    """One document in the session collection.

    Attributes:
        id: Session identifier, stored as the document ``_id``.
        expires: Absolute UTC time after which the record may be swept.
        session: Serialized session values.
    """

    id: str
    expires: datetime
    session: bytes

    def to_document(self) -> dict[str, Any]:
        return {"_id": self.id, "expires": to_bson_datetime(self.expires), "session": self.session}

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> SessionRecord:
        expires: datetime = doc["expires"]
        # pymongo hands back naive datetimes unless the client is tz_aware
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return cls(id=str(doc["_id"]), expires=expires, session=bytes(doc["session"]))


def to_bson_datetime(value: datetime) -> datetime:
    """Return *value* as the naive UTC datetime BSON stores."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
