"""Building and parsing of credential request and response payloads."""

from __future__ import annotations

import base64
import binascii
import string
from dataclasses import dataclass
from typing import Iterable

from .defines import (
    ERR_INVALID_PARA,
    ERR_NO_CHALLENGE,
    ERR_NO_CRED,
    MAX_CRED_ARRAY_SIZE,
    UINT32_MAX,
    DslmError,
    current_version,
)
from .messages import (
    FIELD_MESSAGE,
    FIELD_PAYLOAD,
    MSG_TYPE_DSLM_CRED_REQUEST,
    MSG_TYPE_DSLM_CRED_RESPONSE,
    _dump_json,
    _json_int,
    _load_json,
)

FIELD_VERSION = "version"
FIELD_CHALLENGE = "challenge"
FIELD_SUPPORT = "support"
FIELD_CRED_TYPE = "type"
FIELD_CRED_INFO = "info"

_CHALLENGE_BYTES = 8
_MAX_MALLOC_LEN = 1024 * 1024
_HEX_DIGITS = frozenset(string.hexdigits)


@dataclass(frozen=True)
class RequestObject:
    """A peer's credential request."""

    version: int
    challenge: int
    cred_types: tuple[int, ...] = ()


@dataclass(frozen=True)
class CredBuff:
    """A credential of a given type."""

    type: int
    value: bytes


def _challenge_to_hex(challenge: int) -> str:
    if not 0 <= challenge < 2 ** (8 * _CHALLENGE_BYTES):
        raise ValueError("challenge must be an unsigned 64-bit value")
    return challenge.to_bytes(_CHALLENGE_BYTES, "little").hex().upper()


def _hex_to_challenge(text: str) -> int | None:
    count = len(text) // 2
    if count > _CHALLENGE_BYTES:
        return None
    digits = text[: count * 2]
    if not set(digits) <= _HEX_DIGITS:
        return None
    return int.from_bytes(bytes.fromhex(digits), "little")


def _to_wire(message_type: int, body: dict) -> bytes:
    root = {FIELD_MESSAGE: message_type, FIELD_PAYLOAD: body}
    return _dump_json(root).encode("ascii") + b"\0"


def _load_payload(msg: str | bytes) -> dict:
    if isinstance(msg, (bytes, bytearray)):
        try:
            msg = bytes(msg).split(b"\0", 1)[0].decode("ascii")
        except UnicodeDecodeError as exc:
            raise DslmError(ERR_INVALID_PARA, "payload is not ASCII") from exc
    try:
        root = _load_json(msg)
    except ValueError as exc:
        raise DslmError(ERR_INVALID_PARA, "payload is not JSON") from exc
    if not isinstance(root, dict):
        raise DslmError(ERR_INVALID_PARA, "payload is not a JSON object")
    return root


def _read_challenge(root: dict) -> int:
    text = root.get(FIELD_CHALLENGE)
    if not isinstance(text, str):
        raise DslmError(ERR_NO_CHALLENGE, "no challenge")
    challenge = _hex_to_challenge(text)
    if challenge is None:
        raise DslmError(ERR_NO_CHALLENGE, "malformed challenge")
    return challenge


def _read_int_array(root: dict, key: str, limit: int) -> tuple[int, ...]:
    items = root.get(key)
    if not isinstance(items, list):
        return ()
    return tuple(
        _json_int({key: item}, key)
        for item in items[:limit]
        if isinstance(item, (int, float)) and not isinstance(item, bool)
    )


def _encode_cred(value: bytes) -> str | None:
    if not value or len(value) >= _MAX_MALLOC_LEN // 4 * 3:
        return None
    return base64.b64encode(value).decode("ascii")


def _decode_cred(text: str) -> bytes | None:
    if not text or len(text) > _MAX_MALLOC_LEN // 3 * 4:
        return None
    try:
        decoded = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        return None
    return decoded or None


def build_request(challenge: int, cred_types: Iterable[int]) -> bytes:
    """The NUL-terminated wire message asking a peer for its credential."""
    body = {
        FIELD_VERSION: current_version(),
        FIELD_CHALLENGE: _challenge_to_hex(challenge),
        FIELD_SUPPORT: [int(t) for t in list(cred_types)[:MAX_CRED_ARRAY_SIZE]],
    }
    return _to_wire(MSG_TYPE_DSLM_CRED_REQUEST, body)


def parse_request(msg: str | bytes) -> RequestObject:
    """Parse a request payload; raise DslmError if it is malformed."""
    root = _load_payload(msg)
    challenge = _read_challenge(root)
    version = _json_int(root, FIELD_VERSION) & UINT32_MAX
    cred_types = _read_int_array(root, FIELD_SUPPORT, MAX_CRED_ARRAY_SIZE)
    return RequestObject(version, challenge, cred_types)


def build_response(challenge: int, cred: CredBuff) -> bytes:
    """The NUL-terminated wire message answering a request with a credential."""
    body = {
        FIELD_VERSION: current_version(),
        FIELD_CRED_TYPE: cred.type,
        FIELD_CHALLENGE: _challenge_to_hex(challenge),
    }
    encoded = _encode_cred(cred.value)
    if encoded is not None:
        body[FIELD_CRED_INFO] = encoded
    return _to_wire(MSG_TYPE_DSLM_CRED_RESPONSE, body)


def parse_response(msg: str | bytes) -> tuple[int, int, CredBuff]:
    """Parse a response payload into (challenge, version, credential)."""
    root = _load_payload(msg)
    challenge = _read_challenge(root)
    cred_type = _json_int(root, FIELD_CRED_TYPE) & UINT32_MAX
    version = _json_int(root, FIELD_VERSION) & UINT32_MAX
    text = root.get(FIELD_CRED_INFO)
    if not isinstance(text, str):
        raise DslmError(ERR_NO_CRED, "no credential")
    value = _decode_cred(text)
    if value is None:
        raise DslmError(ERR_NO_CRED, "malformed credential")
    return challenge, version, CredBuff(cred_type, value)