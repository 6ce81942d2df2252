"""Validation and first-level parsing of messages exchanged between devices."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .defines import ERR_INVALID_PARA, DslmError

MSG_TYPE_DSLM_CRED_REQUEST = 0x1
MSG_TYPE_DSLM_CRED_RESPONSE = 0x2

MSG_BUFF_MAX_LENGTH = 81920 * 4

FIELD_MESSAGE = "message"
FIELD_PAYLOAD = "payload"

_ASCII_MAX = 0x7F
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class MessagePacket:
    """A parsed message: its type and its payload as compact JSON text."""

    type: int
    payload: str

    @property
    def length(self) -> int:
        """Payload size on the wire, including the terminating NUL."""
        return len(self.payload.encode("ascii")) + 1


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _load_json(text: str) -> Any:
    return json.loads(text, parse_constant=_reject_constant)


def _dump_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=True)


def _json_int(obj: dict, key: str) -> int:
    """The integer under key, clamped to int32, or -1 when it is not a number."""
    value = obj.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return -1
    return int(max(_INT32_MIN, min(_INT32_MAX, value)))


def check_message(msg: bytes) -> bool:
    """True for a NUL-terminated ASCII message of acceptable size."""
    if msg is None or len(msg) <= 1 or len(msg) > MSG_BUFF_MAX_LENGTH:
        return False
    if msg[-1] != 0:
        return False
    return all(ch <= _ASCII_MAX for ch in msg[:-1])


def parse_message(buff: bytes) -> MessagePacket:
    """Parse a raw message into its type and payload; raise DslmError if malformed."""
    if not check_message(buff):
        raise DslmError(ERR_INVALID_PARA, "malformed message")
    text = buff[:-1].split(b"\0", 1)[0].decode("ascii")
    try:
        root = _load_json(text)
    except ValueError as exc:
        raise DslmError(ERR_INVALID_PARA, "message is not JSON") from exc
    if not isinstance(root, dict):
        raise DslmError(ERR_INVALID_PARA, "message is not a JSON object")
    msg_type = _json_int(root, FIELD_MESSAGE)
    if msg_type < 0:
        raise DslmError(ERR_INVALID_PARA, "message has no valid type")
    if FIELD_PAYLOAD not in root:
        raise DslmError(ERR_INVALID_PARA, "message has no payload")
    return MessagePacket(msg_type, _dump_json(root[FIELD_PAYLOAD]))