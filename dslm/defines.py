"""Core types, constants and error codes of the device security level manager."""

from __future__ import annotations

import string
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .msg_utils import CredBuff, RequestObject

VERSION_MAJOR = 3
VERSION_MINOR = 0
VERSION_PATCH = 0

DEVICE_ID_MAX_LEN = 64
DEFAULT_OS_TYPE = 10
UINT32_MAX = 0xFFFFFFFF
MAX_CRED_ARRAY_SIZE = 16

CRED_TYPE_MINI = 1000
CRED_TYPE_SMALL = 2000
CRED_TYPE_STANDARD = 3000
CRED_TYPE_LARGE = 4000

SUCCESS = 0
ERR_INVALID_PARA = 1
ERR_INVALID_LEN_PARA = 2
ERR_NO_MEMORY = 3
ERR_MEMORY_ERR = 4
ERR_NO_CHALLENGE = 5
ERR_NO_CRED = 6
ERR_SA_BUSY = 7
ERR_TIMEOUT = 8
ERR_NOEXIST_REQUEST = 9
ERR_INVALID_VERSION = 10
ERR_OEM_ERR = 11
ERR_CHALLENGE_ERR = 13
ERR_NOT_ONLINE = 14
ERR_INIT_SELF_ERR = 15
ERR_JSON_ERR = 16
ERR_IPC_ERR = 17
ERR_IPC_RET_PARCEL_ERR = 20
ERR_REQUEST_CODE_ERR = 21
ERR_NOEXIST_DEVICE = 22
ERR_MSG_NOT_INIT = 23
ERR_MSG_OPEN_SESSION = 24
ERR_NEED_COMPATIBLE = 25

_HEX_DIGITS = frozenset(string.hexdigits)
_MACHINE_ID_CHARS = 4


class DslmError(Exception):
    """An error carrying one of the service's numeric error codes."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"dslm error {code}")
        self.code = code


class State(IntEnum):
    """States of a device's state machine."""

    INIT = 0
    WAITING_CRED_RSP = 1
    SUCCESS = 2
    FAILED = 3


class Event(IntEnum):
    """Events fed into a device's state machine."""

    DEVICE_ONLINE = 0
    CRED_RSP = 1
    MSG_SEND_FAILED = 2
    DEVICE_OFFLINE = 3
    TIME_OUT = 4
    SDK_GET = 5
    SDK_TIMEOUT = 6
    CHECK = 7
    TO_SYNC = 8


@dataclass(frozen=True)
class DeviceIdentify:
    """The identity of a device: up to DEVICE_ID_MAX_LEN bytes."""

    identity: bytes

    def __post_init__(self) -> None:
        if len(self.identity) > DEVICE_ID_MAX_LEN:
            raise ValueError(f"device identity longer than {DEVICE_ID_MAX_LEN} bytes")

    @property
    def length(self) -> int:
        return len(self.identity)


@dataclass
class CredInfo:
    """What a verified credential says about a device."""

    cred_type: int = 0
    cred_level: int = 0
    release_type: str = ""
    sign_time: str = ""
    manufacture: str = ""
    brand: str = ""
    model: str = ""
    software_version: str = ""
    security_level: str = ""
    version: str = ""


def current_version() -> int:
    """The protocol version as major << 16 | minor << 8 | patch."""
    return (VERSION_MAJOR << 16) + (VERSION_MINOR << 8) + VERSION_PATCH


def version_major(version: int) -> int:
    return (version & 0xFF0000) >> 16


def version_minor(version: int) -> int:
    return (version & 0xFF00) >> 8


def version_patch(version: int) -> int:
    return version & 0xFF


def generate_machine_id(identity: DeviceIdentify) -> int:
    """Derive a 16-bit machine id from the first four hex characters of an identity."""
    prefix = identity.identity[:_MACHINE_ID_CHARS]
    try:
        text = prefix.decode("ascii")
    except UnicodeDecodeError:
        return 0
    if len(text) < _MACHINE_ID_CHARS or not set(text) <= _HEX_DIGITS:
        return 0
    return int(text, 16)


@dataclass(eq=False)
class DeviceInfo:
    """Everything the service tracks about one device."""

    identity: DeviceIdentify
    machine_id: int = field(init=False)
    state: State = State.INIT
    version: int = 0
    online_status: int = 0
    nonce: int = 0
    nonce_timestamp: int = 0
    last_online_time: int = 0
    last_offline_time: int = 0
    last_request_time: int = 0
    last_response_time: int = 0
    last_verify_time: int = 0
    trans_num: int = 0
    timer: Any = None
    query_times: int = 0
    result: int = UINT32_MAX
    cred_info: CredInfo = field(default_factory=CredInfo)
    notify_list: list = field(default_factory=list)
    history_list: list = field(default_factory=list)
    os_type: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def __post_init__(self) -> None:
        self.machine_id = generate_machine_id(self.identity)


class CredentialProvider(Protocol):
    """Produces, verifies and initialises device credentials."""

    def request_cred(self, device: DeviceIdentify, request: RequestObject) -> CredBuff:
        """Return this device's credential for a peer's request; raise DslmError on failure."""

    def verify_cred(self, device: DeviceIdentify, challenge: int, cred: CredBuff) -> CredInfo:
        """Verify a peer's credential against the challenge; raise DslmError on failure."""

    def init_cred(self) -> CredInfo:
        """Return the credential information of this device; raise DslmError on failure."""