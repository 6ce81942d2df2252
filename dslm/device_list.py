"""The registry of devices the service knows about."""

from __future__ import annotations

import threading
from typing import Iterator

from .defines import DEFAULT_OS_TYPE, DEVICE_ID_MAX_LEN, DeviceIdentify, DeviceInfo

ONLINE_STATUS_ONLINE = 1
ONLINE_STATUS_OFFLINE = 0

MAX_DEVICE_CNT = 128


def is_same_device(first: DeviceIdentify | None, second: DeviceIdentify | None) -> bool:
    """True when both identities are given and equal."""
    if first is None or second is None:
        return False
    return first.identity == second.identity


class DeviceRegistry:
    """A thread-safe, insertion-ordered collection of DeviceInfo records."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._devices: list[DeviceInfo] = []

    def get(self, device: DeviceIdentify | None) -> DeviceInfo | None:
        """The record of a device, or None if it is not tracked."""
        if device is None:
            return None
        with self._lock:
            return next(
                (info for info in self._devices if is_same_device(info.identity, device)),
                None,
            )

    def create_or_get(self, device: DeviceIdentify | None) -> DeviceInfo | None:
        """The record of a device, created if needed; None if it cannot be tracked."""
        if device is None or device.length != DEVICE_ID_MAX_LEN:
            return None
        with self._lock:
            info = self.get(device)
            if info is not None:
                return info
            if len(self._devices) > MAX_DEVICE_CNT:
                return None
            info = DeviceInfo(identity=device)
            self._devices.append(info)
            return info

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __iter__(self) -> Iterator[DeviceInfo]:
        with self._lock:
            snapshot = list(self._devices)
        return iter(snapshot)

    def all_default_type(self) -> bool:
        """True when every tracked device has the default OS type."""
        with self._lock:
            return all(info.os_type == DEFAULT_OS_TYPE for info in self._devices)