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
"""Tests for SessionMiddleware using Starlette's TestClient."""

from __future__ import annotations

import pytest

mongomock_motor = pytest.importorskip("mongomock_motor", reason="mongomock-motor not installed")

from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import ServerSelectionTimeoutError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, StreamingResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from mongosession.kernel.exceptions import SessionLoadException
from mongosession.session.adapters.mongodb import MongoSessionStore
from mongosession.session.codec import codecs_from_pairs
from mongosession.session.middleware import SessionMiddleware


class UnreachableCollection:
    async def replace_one(self, *args: object, **kwargs: object) -> None:
        raise ServerSelectionTimeoutError("localhost:27017: connection refused")


class UnreachableClient:
    def __getitem__(self, name: str) -> dict[str, UnreachableCollection]:
        return {"sessions": UnreachableCollection()}

    def close(self) -> None:
        pass


def build_app(store: MongoSessionStore) -> Starlette:
    async def visits(request: Request) -> PlainTextResponse:
        try:
            session = await store.get(request, "sid")
        except SessionLoadException as exc:
            session = exc.session
        session.values["visits"] = session.values.get("visits", 0) + 1
        return PlainTextResponse(str(session.values["visits"]))

    async def logout(request: Request) -> PlainTextResponse:
        session = await store.get(request, "sid")
        session.options.max_age = -1
        return PlainTextResponse("bye")

    async def untouched(request: Request) -> PlainTextResponse:
        return PlainTextResponse("ok")

    return Starlette(
        routes=[
            Route("/", visits),
            Route("/logout", logout),
            Route("/untouched", untouched),
        ],
        middleware=[Middleware(SessionMiddleware)],
    )


@pytest.fixture
def store():
    client = AsyncMongoMockClient()
    store = MongoSessionStore(client, "test_db", "sessions", codecs_from_pairs(b"secret-key"))
    yield store
    store.close()


class TestSessionMiddleware:
    def test_session_persists_across_requests(self, store: MongoSessionStore):
        client = TestClient(build_app(store))

        first = client.get("/")
        second = client.get("/")

        assert first.text == "1"
        assert "sid" in first.cookies
        assert second.text == "2"

    def test_untouched_request_sets_no_cookie(self, store: MongoSessionStore):
        client = TestClient(build_app(store))

        response = client.get("/untouched")

        assert response.status_code == 200
        assert "set-cookie" not in response.headers

    def test_logout_clears_session(self, store: MongoSessionStore):
        client = TestClient(build_app(store))
        client.get("/")
        client.get("/")

        response = client.get("/logout")
        assert response.text == "bye"
        assert "Max-Age=0" in response.headers["set-cookie"]

        assert client.get("/").text == "1"

    def test_tampered_cookie_starts_fresh_session(self, store: MongoSessionStore):
        client = TestClient(build_app(store), cookies={"sid": "forged.value.signature"})

        response = client.get("/")

        assert response.text == "1"
        assert "sid" in response.cookies

    def test_save_failure_returns_500_without_cookie(self):
        failing = MongoSessionStore(
            UnreachableClient(),  # type: ignore[arg-type]
            "test_db",
            "sessions",
            codecs_from_pairs(b"secret-key"),
        )
        client = TestClient(build_app(failing))

        response = client.get("/")

        assert response.status_code == 500
        assert "set-cookie" not in response.headers

    def test_save_failure_keeps_cookies_of_saved_sessions(self, store: MongoSessionStore):
        failing = MongoSessionStore(
            UnreachableClient(),  # type: ignore[arg-type]
            "test_db",
            "sessions",
            codecs_from_pairs(b"secret-key"),
        )

        async def both(request: Request) -> PlainTextResponse:
            (await store.get(request, "a")).values["user"] = "ada"
            (await failing.get(request, "b")).values["cart"] = [1, 2]
            return PlainTextResponse("ok")

        async def count(request: Request) -> PlainTextResponse:
            return PlainTextResponse(str(await store.count()))

        app = Starlette(
            routes=[Route("/both", both), Route("/count", count)],
            middleware=[Middleware(SessionMiddleware)],
        )
        client = TestClient(app)

        response = client.get("/both")

        assert response.status_code == 500
        cookies = response.headers.get_list("set-cookie")
        assert len(cookies) == 1
        assert cookies[0].startswith("a=")
        assert client.get("/count").text == "1"


class TestStreamingResponses:
    def test_stream_without_session_is_passed_through(self, store: MongoSessionStore):
        async def chunks():
            for part in (b"one ", b"two ", b"three"):
                yield part

        async def stream(request: Request) -> StreamingResponse:
            return StreamingResponse(chunks(), media_type="text/plain")

        app = Starlette(routes=[Route("/stream", stream)], middleware=[Middleware(SessionMiddleware)])
        client = TestClient(app)

        response = client.get("/stream")

        assert response.status_code == 200
        assert response.text == "one two three"
        assert "set-cookie" not in response.headers

    def test_session_obtained_while_streaming_is_not_saved(self, store: MongoSessionStore):
        async def stream(request: Request) -> StreamingResponse:
            async def chunks():
                session = await store.get(request, "sid")
                session.values["late"] = True
                yield b"streamed"

            return StreamingResponse(chunks(), media_type="text/plain")

        async def count(request: Request) -> PlainTextResponse:
            return PlainTextResponse(str(await store.count()))

        app = Starlette(
            routes=[Route("/stream", stream), Route("/count", count)],
            middleware=[Middleware(SessionMiddleware)],
        )
        client = TestClient(app)

        response = client.get("/stream")

        assert response.text == "streamed"
        assert "set-cookie" not in response.headers
        assert client.get("/count").text == "0"
