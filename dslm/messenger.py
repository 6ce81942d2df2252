"""Thread-safe access to the transport that carries messages between devices."""

from __future__ import annotations

import threading
from typing import Protocol

from .defines import ERR_MSG_NOT_INIT, DeviceIdentify, DslmError

ONLINE = 1
OFFLINE = 0

PACKAGE_NAME = "ohos.dslm"
PRIMARY_SESSION_NAME = "device.security.level"
SECONDARY_SESSION_NAME: str | None = None

_EMPTY_DEVICE = DeviceIdentify(b"")


class Messenger(Protocol):
    """The transport used to reach peer devices."""

    def is_ready(self) -> bool:
        """Whether the transport can carry messages."""

    def send_to(self, trans_no: int, device: DeviceIdentify, msg: bytes) -> None:
        """Send a message to a device, tagged with a transaction number."""

    def device_online_status(self, device: DeviceIdentify) -> int | None:
        """The device's level if it is online, None otherwise."""

    def self_device(self) -> tuple[DeviceIdentify, int]:
        """This device's identity and level."""


class MessengerWrapper:
    """Guards a transport with a lock and caches this device's identity."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messenger: Messenger | None = None
        self._self_device: DeviceIdentify = _EMPTY_DEVICE

    def init(self, messenger: Messenger | None) -> None:
        """Start using a transport; raise DslmError if there is none."""
        with self._lock:
            self._messenger = messenger
        if messenger is None:
            raise DslmError(ERR_MSG_NOT_INIT, "messenger not created")

    def deinit(self) -> None:
        """Stop using the current transport, if any."""
        with self._lock:
            self._messenger = None

    def status(self) -> bool:
        """True when a transport is set and ready."""
        with self._lock:
            if self._messenger is None:
                return False
            return bool(self._messenger.is_ready())

    def send(self, trans_no: int, device: DeviceIdentify, msg: bytes) -> None:
        """Send a message; silently dropped when no transport is set."""
        with self._lock:
            if self._messenger is None:
                return
            self._messenger.send_to(trans_no, device, msg)

    def peer_online_status(self, device: DeviceIdentify | None) -> int | None:
        """The peer's level if it is online, None if offline or unknown."""
        with self._lock:
            if self._messenger is None or device is None:
                return None
            return self._messenger.device_online_status(device)

    def self_device(self) -> tuple[DeviceIdentify, int]:
        """This device's identity and the level learned when it was fetched.

        The identity is cached once known; the level is 0 when it came from the cache.
        """
        with self._lock:
            level = 0
            cached = self._self_device.identity
            if (not cached or cached[0] == 0) and self._messenger is not None:
                device, level = self._messenger.self_device()
                self._self_device = device
            return self._self_device, level