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
"""MongoSessionStore lifecycle and failure handling using hand-written Motor stubs."""

from __future__ import annotations

from typing import Any

import pytest
from pymongo.errors import CollectionInvalid, OperationFailure, ServerSelectionTimeoutError
from starlette.requests import Request
from starlette.responses import Response

from mongosession.kernel.exceptions import (
    SerializationException,
    StoreConnectionException,
    StorePersistenceException,
)
from mongosession.kernel.lifecycle import Lifecycle
from mongosession.session.adapters import mongodb as mongodb_adapter
from mongosession.session.adapters.mongodb import MongoSessionStore
from mongosession.session.codec import codecs_from_pairs, encode_multi


def _unreachable() -> ServerSelectionTimeoutError:
    return ServerSelectionTimeoutError("localhost:27017: connection refused")


class FakeCollection:
    """Collection stub that records calls and fails on demand."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.docs: dict[str, dict[str, Any]] = {}
        self.indexes: list[Any] = []

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        if self.fail:
            raise _unreachable()
        return self.docs.get(query["_id"])

    async def replace_one(self, query: dict[str, Any], doc: dict[str, Any], upsert: bool = False) -> None:
        if self.fail:
            raise _unreachable()
        self.docs[query["_id"]] = doc

    async def delete_one(self, query: dict[str, Any]) -> None:
        if self.fail:
            raise _unreachable()
        self.docs.pop(query["_id"], None)

    async def delete_many(self, query: dict[str, Any]) -> None:
        raise _unreachable()

    async def count_documents(self, query: dict[str, Any]) -> int:
        raise _unreachable()

    async def create_index(self, keys: Any, name: str | None = None) -> str:
        if self.fail:
            raise OperationFailure("index build failed")
        self.indexes.append(keys)
        return name or "index"


class FakeDatabase:
    def __init__(self, collection: FakeCollection, existing: bool = False, race: bool = False) -> None:
        self.collection = collection
        self.existing = existing
        self.race = race
        self.created: list[str] = []

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collection

    async def list_collection_names(self) -> list[str]:
        return ["sessions"] if self.existing else []

    async def create_collection(self, name: str) -> FakeCollection:
        if self.race:
            raise CollectionInvalid(f"collection {name} already exists")
        self.created.append(name)
        return self.collection

    async def command(self, name: str) -> dict[str, Any]:
        return {"ok": 1.0}


class FakeAdmin:
    def __init__(self, reachable: bool) -> None:
        self.reachable = reachable

    async def command(self, name: str) -> dict[str, Any]:
        if not self.reachable:
            raise _unreachable()
        return {"ok": 1.0}


class FakeClient:
    def __init__(self, database: FakeDatabase, reachable: bool = True) -> None:
        self.database = database
        self.admin = FakeAdmin(reachable)
        self.closed = False

    def __getitem__(self, name: str) -> FakeDatabase:
        return self.database

    def close(self) -> None:
        self.closed = True


def make_request(cookie: str | None = None) -> Request:
    headers = [(b"cookie", cookie.encode("latin-1"))] if cookie else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "query_string": b""})


def make_store(collection: FakeCollection, **kwargs: Any) -> tuple[MongoSessionStore, FakeClient]:
    client = FakeClient(FakeDatabase(collection), **kwargs)
    store = MongoSessionStore(client, "test_db", "sessions", codecs_from_pairs(b"secret-key"))  # type: ignore[arg-type]
    return store, client


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_builds_pooled_client_and_codecs(self, monkeypatch: pytest.MonkeyPatch):
        created: list[tuple[str, dict[str, Any]]] = []
        collection = FakeCollection()

        def fake_motor(address: str, **kwargs: Any) -> FakeClient:
            created.append((address, kwargs))
            return FakeClient(FakeDatabase(collection))

        monkeypatch.setattr(mongodb_adapter, "AsyncIOMotorClient", fake_motor)

        store = await MongoSessionStore.connect(
            "mongodb://db:27017", "web", "sessions", 5, 10, b"hash-new", b"block-new", b"hash-old"
        )

        assert created == [("mongodb://db:27017", {"minPoolSize": 5, "maxPoolSize": 10})]
        assert len(store.codecs) == 2
        assert collection.indexes == [[("expires", 1)]]

    @pytest.mark.asyncio
    async def test_connect_fails_when_unreachable(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            mongodb_adapter,
            "AsyncIOMotorClient",
            lambda address, **kwargs: FakeClient(FakeDatabase(FakeCollection()), reachable=False),
        )

        with pytest.raises(StoreConnectionException):
            await MongoSessionStore.connect("mongodb://nowhere:27017", "web", "sessions", 1, 1, b"hash")


class TestStart:
    def test_implements_lifecycle(self):
        store, _ = make_store(FakeCollection())
        assert isinstance(store, Lifecycle)

    @pytest.mark.asyncio
    async def test_unreachable_database_is_fatal(self):
        store, client = make_store(FakeCollection(), reachable=False)

        with pytest.raises(StoreConnectionException) as exc_info:
            await store.start()

        assert exc_info.value.code == "SESSION_STORE_UNREACHABLE"
        assert client.closed is True

    @pytest.mark.asyncio
    async def test_start_creates_collection_and_index(self):
        collection = FakeCollection()
        store, client = make_store(collection)

        await store.start()

        assert client.database.created == ["sessions"]
        assert collection.indexes == [[("expires", 1)]]

    @pytest.mark.asyncio
    async def test_existing_collection_is_not_recreated(self):
        collection = FakeCollection()
        client = FakeClient(FakeDatabase(collection, existing=True))
        store = MongoSessionStore(client, "test_db", "sessions", [])  # type: ignore[arg-type]

        await store.ensure_schema()

        assert client.database.created == []
        assert len(collection.indexes) == 1

    @pytest.mark.asyncio
    async def test_schema_errors_are_not_fatal(self):
        collection = FakeCollection(fail=True)
        client = FakeClient(FakeDatabase(collection, race=True))
        store = MongoSessionStore(client, "test_db", "sessions", [])  # type: ignore[arg-type]

        await store.start()

        assert collection.indexes == []

    @pytest.mark.asyncio
    async def test_stop_closes_client(self):
        store, client = make_store(FakeCollection())
        await store.stop()
        assert client.closed is True


class TestWriteFailures:
    @pytest.mark.asyncio
    async def test_failed_upsert_sets_no_cookie(self):
        store, _ = make_store(FakeCollection(fail=True))
        session = await store.new(make_request(), "sid")
        session.values["k"] = "v"
        response = Response()

        with pytest.raises(StorePersistenceException) as exc_info:
            await store.save(make_request(), response, session)

        assert exc_info.value.code == "SESSION_SAVE_FAILED"
        assert response.headers.getlist("set-cookie") == []
        assert session.id == ""

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_cookie(self):
        store, _ = make_store(FakeCollection(fail=True))
        session = await store.new(make_request(), "sid")
        session.id = "SOMEID"
        session.options.max_age = -1
        response = Response()

        with pytest.raises(StorePersistenceException):
            await store.save(make_request(), response, session)

        assert response.headers.getlist("set-cookie") == []

    @pytest.mark.asyncio
    async def test_serialization_error_aborts_before_write(self):
        collection = FakeCollection()
        store, _ = make_store(collection)
        session = await store.new(make_request(), "sid")
        session.values["gen"] = (x for x in range(3))
        response = Response()

        with pytest.raises(SerializationException):
            await store.save(make_request(), response, session)

        assert collection.docs == {}
        assert response.headers.getlist("set-cookie") == []

    @pytest.mark.asyncio
    async def test_lookup_failure_propagates(self):
        store, _ = make_store(FakeCollection(fail=True))
        cookie = encode_multi("sid", "SOMEID", store.codecs)

        with pytest.raises(StorePersistenceException) as exc_info:
            await store.new(make_request(f"sid={cookie}"), "sid")

        assert exc_info.value.code == "SESSION_LOAD_FAILED"


class TestMaintenanceFailures:
    @pytest.mark.asyncio
    async def test_delete_expired_failure(self):
        store, _ = make_store(FakeCollection())
        with pytest.raises(StorePersistenceException) as exc_info:
            await store.delete_expired()
        assert exc_info.value.code == "SESSION_SWEEP_FAILED"

    @pytest.mark.asyncio
    async def test_count_failure(self):
        store, _ = make_store(FakeCollection())
        with pytest.raises(StorePersistenceException) as exc_info:
            await store.count()
        assert exc_info.value.code == "SESSION_COUNT_FAILED"
