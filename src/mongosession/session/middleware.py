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
"""SessionMiddleware — persists registered sessions before the response is sent."""

from __future__ import annotations

import logging
from typing import Any

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from mongosession.kernel.exceptions import SessionStoreException
from mongosession.session.registry import get_registry, save_sessions

_logger = logging.getLogger(__name__)

_SET_COOKIE = b"set-cookie"


class SessionMiddleware:
    """Pure ASGI middleware that saves every session a handler touched.

    Handlers obtain sessions with ``await store.get(request, name)``; those
    sessions are registered on ``request.state`` and saved here once the
    downstream app has produced its response, so the ``Set-Cookie`` headers
    land on that response. If a save fails, a 500 response is sent instead.
    It still carries the cookies of the sessions that were saved, and no
    cookie for the failed session leaves the server.

    A response with registered sessions is buffered until they are saved.
    A response that starts before any session is registered (streaming
    endpoints that never touch a session) is passed through unbuffered;
    sessions obtained after that point cannot set a cookie and are not saved.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive, send)
        response = await self._call_app(scope, receive, send, request)
        if response is None:
            if len(get_registry(request)):
                _logger.warning(
                    "Sessions obtained after %s %s started its response were not saved",
                    request.method,
                    request.url.path,
                )
            return

        try:
            await save_sessions(request, response)
        except SessionStoreException as exc:
            _logger.error("Session persistence failed for %s %s: %s", request.method, request.url.path, exc)
            response = self._error_response(response)

        await response(scope, receive, send)

    async def _call_app(self, scope: Scope, receive: Receive, send: Send, request: Request) -> Response | None:
        """Run the downstream ASGI app and capture its response.

        Returns ``None`` when the response was streamed straight to *send*
        because no session was registered when it started.
        """
        status_code = 200
        raw_headers: list[tuple[bytes, bytes]] = []
        body_parts: list[bytes] = []
        passthrough = False

        async def _intercept(message: Message) -> None:
            nonlocal status_code, raw_headers, passthrough
            if message["type"] == "http.response.start":
                if not len(get_registry(request)):
                    passthrough = True
                    await send(message)
                    return
                status_code = message["status"]
                raw_headers = list(message.get("headers", []))
            elif passthrough:
                await send(message)
            elif message["type"] == "http.response.body":
                body: Any = message.get("body", b"")
                if body:
                    body_parts.append(body)

        await self.app(scope, receive, _intercept)

        if passthrough:
            return None
        response = Response(content=b"".join(body_parts), status_code=status_code)
        response.raw_headers[:] = raw_headers
        return response

    @staticmethod
    def _error_response(response: Response) -> Response:
        """Build the 500 response, keeping cookies of sessions that were saved.

        A store sets its cookie only after its own write succeeded, so every
        ``Set-Cookie`` header already on *response* is backed by the database.
        """
        error = PlainTextResponse("Internal Server Error", status_code=500)
        error.raw_headers.extend((key, value) for key, value in response.raw_headers if key.lower() == _SET_COOKIE)
        return error
