"""Challenge handling and the credential request/response exchange with a peer."""

from __future__ import annotations

import time
from typing import Iterable

from .crypto import RANDOM_MAX_LEN, generate_random
from .defines import (
    ERR_CHALLENGE_ERR,
    ERR_INVALID_PARA,
    CredentialProvider,
    CredInfo,
    DeviceInfo,
    DslmError,
)
from .messenger import MessengerWrapper
from .msg_utils import build_request, parse_response

NONCE_ALIVE_TIME = 60000
_NONCE_BYTES = 8


def _millis_since_boot() -> int:
    return int(time.monotonic() * 1000)


def _nonce_expired(device: DeviceInfo, now: int) -> bool:
    return now <= device.nonce_timestamp or now - device.nonce_timestamp > NONCE_ALIVE_TIME


def check_and_generate_challenge(device: DeviceInfo, now: int | None = None) -> int:
    """Refresh the device's nonce if it is missing or stale; return the nonce."""
    now = _millis_since_boot() if now is None else now
    if _nonce_expired(device, now) or device.nonce == 0:
        rand = generate_random(RANDOM_MAX_LEN)
        device.nonce = int.from_bytes(rand[:_NONCE_BYTES], "little")
        device.nonce_timestamp = now
    return device.nonce


def send_device_info_request(
    device: DeviceInfo, messenger: MessengerWrapper, cred_types: Iterable[int]
) -> bytes:
    """Send a credential request carrying the device's nonce; return the message sent."""
    try:
        msg = build_request(device.nonce, cred_types)
    except ValueError as exc:
        raise DslmError(ERR_INVALID_PARA, "cannot build request") from exc
    device.trans_num += 1
    messenger.send(device.trans_num, device.identity, msg)
    return msg


def verify_device_info_response(
    device: DeviceInfo,
    msg: str | bytes,
    credentials: CredentialProvider,
    now: int | None = None,
) -> CredInfo:
    """Check a peer's response against the device's nonce and verify its credential.

    Raise DslmError on any failure; on success store and return the credential info.
    """
    if msg is None:
        raise DslmError(ERR_INVALID_PARA, "no response")
    nonce, version, cred = parse_response(msg)
    device.version = version
    if nonce != device.nonce or nonce == 0:
        raise DslmError(ERR_CHALLENGE_ERR, "nonce not equal")
    now = _millis_since_boot() if now is None else now
    if _nonce_expired(device, now):
        raise DslmError(ERR_CHALLENGE_ERR, "nonce expired")
    device.cred_info = credentials.verify_cred(device.identity, device.nonce, cred)
    return device.cred_info