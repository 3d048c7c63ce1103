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
"""Cookie codecs — signing, optional encryption and key rotation.

A codec chain is an ordered list: the first codec signs new cookies, and
every codec is tried when verifying, so cookies minted with an older key
keep working until that key is dropped from the chain.
"""

from __future__ import annotations

import base64
import logging
import secrets
from collections.abc import Sequence

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from itsdangerous import BadData, URLSafeTimedSerializer

from mongosession.kernel.exceptions import CodecException
from mongosession.session.options import DEFAULT_MAX_AGE
from mongosession.session.ports.outbound import Codec

_logger = logging.getLogger(__name__)

_SESSION_ID_BYTES = 32


def _as_bytes(key: str | bytes) -> bytes:
    return key.encode("utf-8") if isinstance(key, str) else key


def _fernet_for(block_key: bytes) -> Fernet:
    derived = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=b"mongosession-cookie-encryption",
    ).derive(block_key)
    return Fernet(base64.urlsafe_b64encode(derived))


class SecureCookieCodec:
    """Signs (and optionally encrypts) cookie values.

    Values are signed with ``itsdangerous`` using the cookie name as salt,
    so a value minted for one cookie never verifies for another. With a
    *block_key* the value is Fernet-encrypted before signing. Signatures
    carry a timestamp; values older than ``max_age`` seconds are rejected
    (``max_age <= 0`` disables the check).
    """

    def __init__(
        self,
        hash_key: str | bytes,
        block_key: str | bytes | None = None,
        max_age: int = DEFAULT_MAX_AGE,
    ) -> None:
        if not hash_key:
            raise ValueError("hash key must not be empty")
        self._hash_key = _as_bytes(hash_key)
        self._fernet = _fernet_for(_as_bytes(block_key)) if block_key else None
        self._max_age = max_age

    @property
    def max_age(self) -> int:
        return self._max_age

    @property
    def encrypted(self) -> bool:
        return self._fernet is not None

    def set_max_age(self, age: int) -> None:
        self._max_age = age

    def _serializer(self, name: str) -> URLSafeTimedSerializer:
        return URLSafeTimedSerializer(self._hash_key, salt=name)

    def encode(self, name: str, value: str) -> str:
        if self._fernet is not None:
            value = self._fernet.encrypt(value.encode("utf-8")).decode("ascii")
        return self._serializer(name).dumps(value)

    def decode(self, name: str, value: str) -> str:
        max_age = self._max_age if self._max_age > 0 else None
        try:
            payload = self._serializer(name).loads(value, max_age=max_age)
        except BadData as exc:
            raise CodecException(f"Cookie '{name}' failed verification: {exc}", code="COOKIE_BAD_SIGNATURE") from exc
        if not isinstance(payload, str):
            raise CodecException(f"Cookie '{name}' carries a non-string value", code="COOKIE_BAD_PAYLOAD")
        if self._fernet is None:
            return payload
        try:
            return self._fernet.decrypt(payload.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError) as exc:
            raise CodecException(f"Cookie '{name}' failed decryption", code="COOKIE_BAD_CIPHERTEXT") from exc


def codecs_from_pairs(*keys: str | bytes | None) -> list[Codec]:
    """Build a codec chain from ``hash_key, block_key, hash_key, block_key, ...``.

    Pairs are given newest first. An odd number of keys leaves the last
    pair without a block key; an empty block key disables encryption.
    """
    codecs: list[Codec] = []
    for i in range(0, len(keys), 2):
        hash_key = keys[i]
        if not hash_key:
            raise ValueError(f"hash key at position {i} must not be empty")
        block_key = keys[i + 1] if i + 1 < len(keys) else None
        codecs.append(SecureCookieCodec(hash_key, block_key or None))
    return codecs


def encode_multi(name: str, value: str, codecs: Sequence[Codec]) -> str:
    """Encode *value* with the first codec in the chain that succeeds."""
    if not codecs:
        raise CodecException("No codecs configured", code="COOKIE_NO_CODECS")
    errors: list[Exception] = []
    for codec in codecs:
        try:
            return codec.encode(name, value)
        except CodecException as exc:
            errors.append(exc)
    raise CodecException(
        f"Cookie '{name}' could not be encoded by any codec",
        code="COOKIE_ENCODE_FAILED",
        context={"errors": [str(e) for e in errors]},
    )


def decode_multi(name: str, value: str, codecs: Sequence[Codec]) -> str:
    """Decode *value* with the first codec in the chain that verifies it."""
    if not codecs:
        raise CodecException("No codecs configured", code="COOKIE_NO_CODECS")
    errors: list[Exception] = []
    for codec in codecs:
        try:
            return codec.decode(name, value)
        except CodecException as exc:
            errors.append(exc)
    _logger.debug("Cookie '%s' rejected by %d codec(s)", name, len(errors))
    raise CodecException(
        f"Cookie '{name}' could not be verified by any codec",
        code="COOKIE_VERIFICATION_FAILED",
        context={"errors": [str(e) for e in errors]},
    )


def generate_session_id() -> str:
    """Return a new random session id: 32 random bytes, unpadded base-32."""
    return base64.b32encode(secrets.token_bytes(_SESSION_ID_BYTES)).decode("ascii").rstrip("=")
