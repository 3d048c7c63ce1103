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
"""MongoDB-backed session store.

Only a signed session id travels in the cookie; the session values live in
a collection as ``{_id, expires, session}`` documents. An ascending index
on ``expires`` serves :meth:`MongoSessionStore.delete_expired`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import CollectionInvalid, PyMongoError

from mongosession.kernel.exceptions import (
    CodecException,
    CookieVerificationException,
    CorruptSessionException,
    SerializationException,
    StoreConnectionException,
    StorePersistenceException,
)
from mongosession.session.codec import codecs_from_pairs, decode_multi, encode_multi, generate_session_id
from mongosession.session.options import (
    DEFAULT_MAX_AGE,
    SessionOptions,
    clear_session_cookie,
    set_session_cookie,
)
from mongosession.session.ports.outbound import Codec, SessionSerializer
from mongosession.session.record import SessionRecord, to_bson_datetime
from mongosession.session.registry import get_registry
from mongosession.session.serializer import PickleSerializer
from mongosession.session.session import Session

if TYPE_CHECKING:
    from mongosession.core.config import Config

_logger = logging.getLogger(__name__)

EXPIRES_INDEX = "expires"


class MongoSessionStore:
    """Session store backed by a ``motor`` client.

    The store owns the client for its whole lifetime; :meth:`close` releases
    it. All instances are safe to share between concurrent requests: the
    driver's connection pool is the only shared mutable state, and the store
    keeps no session data in process.

    Concurrent saves of the same session id are last-write-wins.
    """

    def __init__(
        self,
        client: AsyncIOMotorClient,  # type: ignore[type-arg]
        database: str,
        table: str,
        codecs: Sequence[Codec],
        *,
        options: SessionOptions | None = None,
        default_max_age: int = DEFAULT_MAX_AGE,
        serializer: SessionSerializer | None = None,
    ) -> None:
        self._client = client
        self._database = database
        self._table = table
        self.codecs: list[Codec] = list(codecs)
        self.options = options.copy() if options is not None else SessionOptions()
        self.default_max_age = default_max_age
        self._serializer: SessionSerializer = serializer if serializer is not None else PickleSerializer()
        self.set_max_age(self.options.max_age)

    @classmethod
    async def connect(
        cls,
        address: str,
        database: str,
        table: str,
        min_idle: int,
        max_open: int,
        *key_pairs: str | bytes | None,
        options: SessionOptions | None = None,
        default_max_age: int = DEFAULT_MAX_AGE,
        serializer: SessionSerializer | None = None,
        **client_kwargs: Any,
    ) -> MongoSessionStore:
        """Connect to MongoDB and return a ready store.

        Takes the database address, database name, session collection,
        minimum idle and maximum open pool connections, and the session key
        pairs (``hash_key, block_key, ...``, newest first). Raises
        :class:`StoreConnectionException` if the server cannot be reached.
        """
        client: AsyncIOMotorClient = AsyncIOMotorClient(  # type: ignore[type-arg]
            address,
            minPoolSize=min_idle,
            maxPoolSize=max_open,
            **client_kwargs,
        )
        store = cls(
            client,
            database,
            table,
            codecs_from_pairs(*key_pairs),
            options=options,
            default_max_age=default_max_age,
            serializer=serializer,
        )
        await store.start()
        return store

    @classmethod
    async def from_config(cls, config: Config) -> MongoSessionStore:
        """Connect a store configured from ``mongosession.store.*``."""
        from mongosession.session.factory import create_session_store

        return await create_session_store(config)

    @property
    def collection(self) -> AsyncIOMotorCollection:  # type: ignore[type-arg]
        return self._client[self._database][self._table]

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Validate connectivity, then make sure the collection and index exist."""
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            self._client.close()
            raise StoreConnectionException(
                f"Cannot connect to MongoDB: {exc}",
                code="SESSION_STORE_UNREACHABLE",
                context={"database": self._database, "table": self._table},
            ) from exc
        await self.ensure_schema()

    async def stop(self) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying MongoDB client."""
        self._client.close()

    async def ensure_schema(self) -> None:
        """Create the session collection and the ``expires`` index if missing.

        Failures are logged and ignored; an existing collection or index is
        the normal steady state.
        """
        db = self._client[self._database]
        try:
            if self._table not in await db.list_collection_names():
                await db.create_collection(self._table)
                _logger.info("Created session collection '%s.%s'", self._database, self._table)
        except CollectionInvalid:
            pass
        except PyMongoError as exc:
            _logger.warning("Could not create session collection '%s': %s", self._table, exc)

        try:
            await self.collection.create_index([("expires", ASCENDING)], name=EXPIRES_INDEX)
        except PyMongoError as exc:
            _logger.warning("Could not create '%s' index on '%s': %s", EXPIRES_INDEX, self._table, exc)

    # -- configuration ------------------------------------------------------

    def set_max_age(self, age: int) -> None:
        """Set the max age for the store and every cookie codec.

        Individual sessions can be deleted by setting ``options.max_age = -1``
        on that session.
        """
        self.options.max_age = age
        for codec in self.codecs:
            set_codec_max_age = getattr(codec, "set_max_age", None)
            if set_codec_max_age is not None:
                set_codec_max_age(age)

    # -- SessionStore -------------------------------------------------------

    async def get(self, request: Any, name: str) -> Session:
        """Return the session for *name*, registered on the request."""
        return await get_registry(request).get(self, name)

    async def new(self, request: Any, name: str) -> Session:
        """Return a session for *name* without registering it.

        Raises :class:`CookieVerificationException` or
        :class:`CorruptSessionException` carrying a usable new session when
        the cookie or the stored payload cannot be read.
        """
        session = Session(self, name, self.options.copy(), is_new=True)
        cookie = request.cookies.get(name)
        if not cookie:
            return session

        try:
            session.id = decode_multi(name, cookie, self.codecs)
        except CodecException as exc:
            _logger.warning("Rejected session cookie '%s': %s", name, exc)
            raise CookieVerificationException(
                f"Session cookie '{name}' is invalid",
                session,
                code="SESSION_COOKIE_INVALID",
            ) from exc

        try:
            found = await self._load(session)
        except SerializationException as exc:
            _logger.warning("Session '%s' has an unreadable payload: %s", session.id, exc)
            session.values = {}
            raise CorruptSessionException(
                f"Stored session for cookie '{name}' is corrupt",
                session,
                code="SESSION_PAYLOAD_CORRUPT",
                context={"session_id": session.id},
            ) from exc

        session.is_new = not found
        return session

    async def save(self, request: Any, response: Any, session: Session) -> None:
        """Persist *session* and write its cookie onto *response*.

        A negative ``max_age`` deletes the record and expires the cookie.
        Nothing is written to the response if the database write fails.
        """
        if session.options.max_age < 0:
            if session.id:
                await self._delete(session.id)
            clear_session_cookie(response, session.name, session.options)
            return

        session_id = session.id or generate_session_id()
        payload = self._serializer.dumps(session.values)
        age = session.options.max_age or self.default_max_age
        expires = datetime.now(timezone.utc) + timedelta(seconds=age)
        encoded = encode_multi(session.name, session_id, self.codecs)

        await self._upsert(SessionRecord(id=session_id, expires=expires, session=payload))
        session.id = session_id
        set_session_cookie(response, session.name, encoded, session.options)

    # -- maintenance --------------------------------------------------------

    async def delete_expired(self) -> int:
        """Delete every record whose ``expires`` lies in the past.

        Returns the number of deleted records. Meant to be called by an
        external scheduler; the store never sweeps on its own.
        """
        now = datetime.now(timezone.utc)
        try:
            result = await self.collection.delete_many({"expires": {"$lt": to_bson_datetime(now)}})
        except PyMongoError as exc:
            raise StorePersistenceException(
                f"Failed to delete expired sessions: {exc}", code="SESSION_SWEEP_FAILED"
            ) from exc
        if result.deleted_count:
            _logger.info("Deleted %d expired session(s) from '%s'", result.deleted_count, self._table)
        return int(result.deleted_count)

    async def count(self) -> int:
        """Return the number of stored session records."""
        try:
            return int(await self.collection.count_documents({}))
        except PyMongoError as exc:
            raise StorePersistenceException(
                f"Failed to count sessions: {exc}", code="SESSION_COUNT_FAILED"
            ) from exc

    async def find_record(self, session_id: str) -> SessionRecord | None:
        """Return the stored record for *session_id*, or ``None`` if absent."""
        try:
            doc = await self.collection.find_one({"_id": session_id})
        except PyMongoError as exc:
            raise StorePersistenceException(
                f"Failed to load session: {exc}",
                code="SESSION_LOAD_FAILED",
                context={"session_id": session_id},
            ) from exc
        return SessionRecord.from_document(doc) if doc is not None else None

    # -- internals ----------------------------------------------------------

    async def _load(self, session: Session) -> bool:
        """Populate ``session.values``; return ``False`` if no live record exists."""
        record = await self.find_record(session.id)
        if record is None:
            return False
        if record.expires <= datetime.now(timezone.utc):
            _logger.debug("Session '%s' expired at %s", session.id, record.expires.isoformat())
            return False
        session.values = self._serializer.loads(record.session)
        return True

    async def _upsert(self, record: SessionRecord) -> None:
        try:
            await self.collection.replace_one({"_id": record.id}, record.to_document(), upsert=True)
        except PyMongoError as exc:
            raise StorePersistenceException(
                f"Failed to save session: {exc}",
                code="SESSION_SAVE_FAILED",
                context={"session_id": record.id},
            ) from exc

    async def _delete(self, session_id: str) -> None:
        try:
            await self.collection.delete_one({"_id": session_id})
        except PyMongoError as exc:
            raise StorePersistenceException(
                f"Failed to delete session: {exc}",
                code="SESSION_DELETE_FAILED",
                context={"session_id": session_id},
            ) from exc
