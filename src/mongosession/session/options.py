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
"""Cookie options shared by the store and individual sessions."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

DEFAULT_MAX_AGE = 86400 * 30  # 30 days


@dataclass
class SessionOptions:
    """Cookie attributes for a session.

    ``max_age`` drives persistence as well as the cookie: a negative value
    deletes the session, zero means "use the store's default TTL" for the
    stored record and a browser-session cookie on the client.
    """

    path: str = "/"
    domain: str | None = None
    max_age: int = DEFAULT_MAX_AGE
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"

    def copy(self) -> SessionOptions:
        return dataclasses.replace(self)


def set_session_cookie(response: Any, name: str, value: str, options: SessionOptions) -> None:
    """Write the session cookie onto a Starlette-style response."""
    response.set_cookie(
        key=name,
        value=value,
        max_age=options.max_age if options.max_age > 0 else None,
        path=options.path,
        domain=options.domain,
        secure=options.secure,
        httponly=options.http_only,
        samesite=options.same_site,
    )


def clear_session_cookie(response: Any, name: str, options: SessionOptions) -> None:
    """Write an already-expired, empty session cookie."""
    response.delete_cookie(
        key=name,
        path=options.path,
        domain=options.domain,
        secure=options.secure,
        httponly=options.http_only,
        samesite=options.same_site,
    )
