"""The client-facing entry point for device security level requests."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from .core import DslmCore
from .defines import ERR_INVALID_PARA, DeviceIdentify, DslmError
from .fsm import CallbackInfo

DFT_TIMEOUT = 45
MAX_TIMEOUT = 60
MIN_TIMEOUT = 1
WARNING_GATE = 64
COOKIE_SHIFT = 32
UNLOAD_TIMEOUT = 10000

_log = logging.getLogger(__name__)

RemoteCallback = Callable[[int, int, CallbackInfo], Any]


def normalize_timeout(timeout: int) -> int:
    """The timeout in seconds, replaced by the default when out of range."""
    if timeout < MIN_TIMEOUT or timeout > MAX_TIMEOUT:
        return DFT_TIMEOUT
    return timeout


def _key(owner: int, cookie: int) -> int:
    return ((owner & 0xFFFFFFFF) << COOKIE_SHIFT) | (cookie & 0xFFFFFFFF)


class RemoteHolder:
    """Holds the callers' reply objects until their answers arrive."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: dict[int, Any] = {}

    def push(self, owner: int, cookie: int, obj: Any) -> bool:
        """Keep an object for the (owner, cookie) pair, replacing any earlier one."""
        with self._lock:
            self._objects[_key(owner, cookie)] = obj
            if len(self._objects) > WARNING_GATE:
                _log.warning("remote objects max warning")
        return True

    def pop(self, owner: int, cookie: int) -> Any:
        """Remove and return the object for the pair, or None if there is none."""
        with self._lock:
            return self._objects.pop(_key(owner, cookie), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class IpcProcess:
    """Accepts level requests from clients and routes the answers back to them.

    When every tracked device has the default OS type, each request (re)arms an idle
    timer; when it fires and that is still so, ``on_idle`` is called.
    """

    unload_delay: float = UNLOAD_TIMEOUT / 1000

    def __init__(self, core: DslmCore) -> None:
        self.core = core
        self.holder = RemoteHolder()
        self.on_idle: Optional[Callable[[], Any]] = None
        self._timer_lock = threading.Lock()
        self._unload_timer: Optional[threading.Timer] = None

    def get_device_security_level(
        self,
        device: Optional[DeviceIdentify],
        timeout: int,
        owner: int,
        cookie: int,
        callback: Optional[RemoteCallback],
    ) -> int:
        """Ask for a device's level; the callback receives (cookie, result, info).

        Return the cookie on acceptance; raise DslmError if the request is refused.
        """
        self._schedule_unload()
        if device is None or callback is None:
            raise DslmError(ERR_INVALID_PARA, "unexpected input")
        if cookie == 0:
            raise DslmError(ERR_INVALID_PARA, "unexpected input, cookie error")
        timeout = normalize_timeout(timeout)

        self.holder.push(owner, cookie, callback)
        try:
            self.core.on_request_level(device, timeout, owner, cookie, self._process_callback)
        except DslmError:
            self.holder.pop(owner, cookie)
            raise
        return cookie

    def _process_callback(
        self, owner: int, cookie: int, result: int, info: Optional[CallbackInfo]
    ) -> None:
        if cookie == 0 or info is None:
            return
        remote = self.holder.pop(owner, cookie)
        if remote is None:
            _log.error("no remote object for owner %u cookie %u", owner, cookie)
            return
        remote(cookie, result, info)

    def _schedule_unload(self) -> None:
        if not self.core.devices.all_default_type():
            return
        with self._timer_lock:
            if self._unload_timer is not None:
                self._unload_timer.cancel()
            timer = threading.Timer(self.unload_delay, self._unload)
            timer.daemon = True
            self._unload_timer = timer
            timer.start()

    def _unload(self) -> None:
        if not self.core.devices.all_default_type():
            return
        if self.on_idle is not None:
            self.on_idle()