"""The service's entry points: peer messages, peer status and SDK level requests."""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from .defines import (
    DEFAULT_OS_TYPE,
    ERR_INVALID_PARA,
    ERR_MSG_NOT_INIT,
    ERR_NOEXIST_DEVICE,
    ERR_NOT_ONLINE,
    ERR_SA_BUSY,
    SUCCESS,
    CredentialProvider,
    DeviceIdentify,
    DslmError,
    Event,
    State,
)
from .device_list import ONLINE_STATUS_ONLINE, DeviceRegistry, is_same_device
from .events import EventReporter, build_app_invoke_event, build_info_sync_event
from .fsm import DslmFsm, NotifyNode, RequestCallback
from .inner_process import _millis_since_boot
from .messenger import MessengerWrapper
from .msg_utils import build_response, parse_request

MAX_NOTIFY_SIZE = 64


class DslmCore:
    """Ties the device registry, the state machines and the transport together."""

    def __init__(
        self,
        messenger: MessengerWrapper,
        credentials: CredentialProvider,
        cred_types: Iterable[int] = (),
        reporter: Optional[EventReporter] = None,
    ) -> None:
        self.messenger = messenger
        self.credentials = credentials
        self.cred_types = tuple(cred_types)
        self.reporter = reporter if reporter is not None else EventReporter()
        self.devices = DeviceRegistry()
        self.fsm = DslmFsm(messenger, credentials, self.cred_types)
        self._init_lock = threading.Lock()
        self._initialized = False

    def on_peer_request(self, device: Optional[DeviceIdentify], msg: str | bytes) -> None:
        """Answer a peer's credential request with this device's credential."""
        if device is None or not msg:
            raise DslmError(ERR_INVALID_PARA, "invalid request")
        request = parse_request(msg)
        cred = self.credentials.request_cred(device, request)
        try:
            response = build_response(request.challenge, cred)
        except ValueError:
            return
        self.messenger.send(0, device, response)

    def on_peer_response(self, device: Optional[DeviceIdentify], msg: str | bytes) -> None:
        """Feed a peer's credential response into its state machine."""
        if device is None or not msg:
            raise DslmError(ERR_INVALID_PARA, "invalid response")
        info = self.devices.get(device)
        if info is None:
            raise DslmError(ERR_NOEXIST_DEVICE, "no existed device")
        self.fsm.schedule(info, Event.CRED_RSP, msg)
        self.reporter.info_sync(build_info_sync_event(info))

    def on_send_result(self, device: Optional[DeviceIdentify], trans_no: int, result: int) -> None:
        """Handle the transport's report on a sent message."""
        if result == SUCCESS:
            return
        info = self.devices.get(device)
        if info is None or info.trans_num != trans_no or info.cred_info.cred_level != 0:
            return
        self.fsm.schedule(info, Event.MSG_SEND_FAILED, result)

    def on_request_level(
        self,
        device: Optional[DeviceIdentify],
        timeout: Optional[int],
        owner: int,
        cookie: int,
        callback: Optional[RequestCallback],
    ) -> None:
        """Queue an SDK request for a device's level; the callback gets the answer."""
        if device is None or timeout is None or callback is None:
            raise DslmError(ERR_INVALID_PARA, "invalid params")
        if not self.messenger.status():
            raise DslmError(ERR_MSG_NOT_INIT, "messenger not ready")
        current = self._refresh_online_status(device)
        info = self.devices.get(current)
        if info is None:
            raise DslmError(ERR_NOEXIST_DEVICE, "input device not exist")
        self.reporter.app_invoke(build_app_invoke_event(info))
        if info.online_status != ONLINE_STATUS_ONLINE:
            raise DslmError(ERR_NOT_ONLINE, "input device not online")
        if len(info.notify_list) >= MAX_NOTIFY_SIZE:
            raise DslmError(ERR_SA_BUSY, "notify list overloaded")
        node = NotifyNode(
            owner=owner,
            cookie=cookie,
            callback=callback,
            start=_millis_since_boot(),
            keep=timeout * 1000,
        )
        self.fsm.schedule(info, Event.SDK_GET, node)

    def on_peer_status(self, device: Optional[DeviceIdentify], status: int, level: int) -> None:
        """Handle a peer going online or offline."""
        info = self.devices.create_or_get(device)
        if info is None or info.online_status == status:
            return
        event = Event.DEVICE_ONLINE if status == ONLINE_STATUS_ONLINE else Event.DEVICE_OFFLINE
        self.fsm.schedule(info, event, level)

    def init_self_level(self) -> bool:
        """Establish this device's own security level; False if it cannot be tracked."""
        device, level = self.messenger.self_device()
        if device.length == 0:
            self.reporter.init_self_failed("GetSelfDevice failed")
            return False
        info = self.devices.create_or_get(device)
        if info is None:
            self.reporter.init_self_failed("CreatOrGetDslmDeviceInfo failed")
            return False
        info.online_status = ONLINE_STATUS_ONLINE
        info.os_type = DEFAULT_OS_TYPE
        if info.last_online_time == 0:
            info.last_online_time = _millis_since_boot()
        if level > 0:
            info.cred_info.cred_level = level
        if info.cred_info.cred_level > 0:
            info.result = SUCCESS
            info.state = State.SUCCESS
            return True
        info.state = State.FAILED
        try:
            info.cred_info = self.credentials.init_cred()
        except DslmError:
            pass
        else:
            if info.cred_info.cred_level > 0:
                info.state = State.SUCCESS
                info.result = SUCCESS
                return True
        self.on_peer_status(device, ONLINE_STATUS_ONLINE, level)
        return True

    def init_process(self) -> bool:
        """Initialise once the transport is ready; True once initialised."""
        if not self.messenger.status():
            return False
        if self._initialized:
            return True
        with self._init_lock:
            if not self._initialized and self.init_self_level():
                self._initialized = True
            return self._initialized

    def deinit_process(self) -> bool:
        return True

    def _refresh_online_status(self, device: DeviceIdentify) -> DeviceIdentify:
        if not device.identity or device.identity[0] == 0:
            return self.messenger.self_device()[0]
        level = self.messenger.peer_online_status(device)
        if level is not None:
            self.on_peer_status(device, ONLINE_STATUS_ONLINE, level)
        self_device, _ = self.messenger.self_device()
        if is_same_device(device, self_device):
            self.init_self_level()
        return device