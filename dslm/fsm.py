"""The per-device state machine that drives credential exchange and SDK requests."""

from __future__ import annotations

import dataclasses
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from .defines import (
    DEFAULT_OS_TYPE,
    ERR_MSG_OPEN_SESSION,
    ERR_TIMEOUT,
    SUCCESS,
    CredentialProvider,
    DeviceInfo,
    DslmError,
    Event,
    State,
)
from .device_list import ONLINE_STATUS_OFFLINE, ONLINE_STATUS_ONLINE
from .inner_process import (
    _millis_since_boot,
    check_and_generate_challenge,
    send_device_info_request,
    verify_device_info_response,
)
from .messenger import MessengerWrapper

REQUEST_INTERVAL = 24 * 60 * 60 * 1000
MAX_SEND_TIMES = 5
SEND_MSG_TIMEOUT_LEN = 40000
MAX_HISTORY_CNT = 30
ERR_SESSION_OPEN_FAILED = 2
_TYPE_PLACE = 8


@dataclass(frozen=True)
class CallbackInfo:
    """What a requester is told about a device's level."""

    level: int
    extra_buff: Optional[bytes] = None

    @property
    def extra_len(self) -> int:
        return len(self.extra_buff) if self.extra_buff else 0


RequestCallback = Callable[[int, int, int, CallbackInfo], Any]


@dataclass
class NotifyNode:
    """One pending or finished level request from an SDK caller."""

    owner: int
    cookie: int
    callback: Optional[RequestCallback]
    start: int = 0
    keep: int = 0
    stop: int = 0
    result: int = 0
    extra: int = 0


Checker = Callable[[DeviceInfo, NotifyNode], Optional[tuple]]
Processor = Callable[[DeviceInfo, Event, Any], bool]


class DslmFsm:
    """Schedules events on devices' state machines.

    Events raised while a device's machine is already handling one are queued and
    handled after the current transition completes.
    """

    def __init__(
        self,
        messenger: MessengerWrapper,
        credentials: CredentialProvider,
        cred_types: Iterable[int],
    ) -> None:
        self._messenger = messenger
        self._credentials = credentials
        self._cred_types = tuple(cred_types)
        self._running: dict[DeviceInfo, deque] = {}
        on_online = self._process_device_online
        send_cred = self._process_send_cred_request
        sdk = self._process_sdk_request
        offline = self._process_device_offline
        verify = self._process_verify_cred_message
        sdk_timeout = self._process_sdk_timeout
        s = State
        e = Event
        self._table: dict[tuple[State, Event], tuple[Optional[Processor], State, State]] = {
            (s.INIT, e.DEVICE_ONLINE): (on_online, s.WAITING_CRED_RSP, s.FAILED),
            (s.INIT, e.SDK_GET): (sdk, s.INIT, s.INIT),
            (s.WAITING_CRED_RSP, e.DEVICE_ONLINE): (on_online, s.WAITING_CRED_RSP, s.FAILED),
            (s.WAITING_CRED_RSP, e.CRED_RSP): (verify, s.SUCCESS, s.FAILED),
            (s.WAITING_CRED_RSP, e.MSG_SEND_FAILED): (
                self._process_send_request_failed,
                s.WAITING_CRED_RSP,
                s.FAILED,
            ),
            (s.WAITING_CRED_RSP, e.TIME_OUT): (send_cred, s.WAITING_CRED_RSP, s.FAILED),
            (s.WAITING_CRED_RSP, e.DEVICE_OFFLINE): (offline, s.INIT, s.INIT),
            (s.WAITING_CRED_RSP, e.TO_SYNC): (None, s.SUCCESS, s.SUCCESS),
            (s.WAITING_CRED_RSP, e.SDK_GET): (sdk, s.WAITING_CRED_RSP, s.WAITING_CRED_RSP),
            (s.WAITING_CRED_RSP, e.SDK_TIMEOUT): (
                sdk_timeout,
                s.WAITING_CRED_RSP,
                s.WAITING_CRED_RSP,
            ),
            (s.SUCCESS, e.DEVICE_OFFLINE): (offline, s.INIT, s.INIT),
            (s.SUCCESS, e.SDK_GET): (sdk, s.SUCCESS, s.SUCCESS),
            (s.FAILED, e.DEVICE_ONLINE): (on_online, s.WAITING_CRED_RSP, s.FAILED),
            (s.FAILED, e.CRED_RSP): (verify, s.SUCCESS, s.FAILED),
            (s.FAILED, e.DEVICE_OFFLINE): (offline, s.INIT, s.INIT),
            (s.FAILED, e.CHECK): (send_cred, s.WAITING_CRED_RSP, s.WAITING_CRED_RSP),
            (s.FAILED, e.SDK_GET): (sdk, s.FAILED, s.FAILED),
            (s.FAILED, e.SDK_TIMEOUT): (sdk_timeout, s.FAILED, s.FAILED),
        }

    def state(self, info: Optional[DeviceInfo]) -> State:
        """The current state of a device's machine; FAILED when there is no device."""
        if info is None:
            return State.FAILED
        return info.state

    def schedule(self, info: Optional[DeviceInfo], event: Event, para: Any = None) -> None:
        """Feed an event with its parameter into a device's state machine."""
        if info is None:
            return
        with info.lock:
            queue = self._running.get(info)
            if queue is not None:
                queue.append((event, para))
                return
            queue = deque([(event, para)])
            self._running[info] = queue
            try:
                while queue:
                    current, current_para = queue.popleft()
                    self._dispatch(info, Event(current), current_para)
            finally:
                del self._running[info]

    def _dispatch(self, info: DeviceInfo, event: Event, para: Any) -> None:
        entry = self._table.get((info.state, event))
        if entry is None:
            return
        processor, next_state, failure_state = entry
        ok = True if processor is None else processor(info, event, para)
        info.state = next_state if ok else failure_state

    # timers

    def _start_timer(self, delay_ms: int, info: DeviceInfo, event: Event) -> threading.Timer:
        timer = threading.Timer(max(delay_ms, 0) / 1000, self.schedule, (info, event, None))
        timer.daemon = True
        timer.start()
        return timer

    @staticmethod
    def _stop_request_timer(info: DeviceInfo) -> None:
        if info.timer is not None:
            info.timer.cancel()
            info.timer = None

    # helpers

    def _check_times_and_send(self, info: DeviceInfo, enforce: bool) -> bool:
        if not enforce and info.query_times > MAX_SEND_TIMES:
            return False
        now = _millis_since_boot()
        check_and_generate_challenge(info, now)
        try:
            send_device_info_request(info, self._messenger, self._cred_types)
        except DslmError:
            pass
        info.query_times += 1
        info.last_request_time = _millis_since_boot()
        self._stop_request_timer(info)
        info.timer = self._start_timer(SEND_MSG_TIMEOUT_LEN, info, Event.TIME_OUT)
        return True

    def _notify(self, info: DeviceInfo, checker: Checker) -> None:
        for node in list(info.notify_list):
            checked = checker(info, node)
            if checked is None:
                continue
            result, cb_info = checked
            if node.callback is not None:
                node.callback(node.owner, node.cookie, result, cb_info)
            node.stop = _millis_since_boot()
            node.result = result
            info.notify_list.remove(node)
            info.history_list.append(node)
        excess = len(info.history_list) - MAX_HISTORY_CNT
        if excess > 0:
            del info.history_list[:excess]

    @staticmethod
    def _request_done(info: DeviceInfo, node: NotifyNode) -> tuple:
        return info.result, CallbackInfo(level=info.cred_info.cred_level)

    @staticmethod
    def _sdk_timeout(info: DeviceInfo, node: NotifyNode) -> Optional[tuple]:
        if node.start + node.keep > _millis_since_boot():
            return None
        return ERR_TIMEOUT, CallbackInfo(level=0)

    # processors

    def _process_device_online(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        attributes = int(para) & 0xFFFFFFFF if para is not None else 0
        level = attributes & 0xFF
        os_type = (attributes & 0xFF00) >> _TYPE_PLACE
        info.os_type = os_type
        if level == 0 and os_type == DEFAULT_OS_TYPE:
            level = 1
        if level > 0:
            info.cred_info.cred_level = level
            info.result = SUCCESS
        info.online_status = ONLINE_STATUS_ONLINE
        info.query_times = 0
        info.last_online_time = _millis_since_boot()
        if info.cred_info.cred_level > 0:
            self.schedule(info, Event.TO_SYNC, None)
            return True
        return self._process_send_cred_request(info, event, para)

    def _process_send_cred_request(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        return self._check_times_and_send(info, para is not None)

    def _process_sdk_request(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        if not isinstance(para, NotifyNode):
            return False
        node = dataclasses.replace(para, stop=0, result=0, extra=0)
        if node.cookie == 0 or node.callback is None:
            return False
        info.notify_list.insert(0, node)
        state = info.state
        if state in (State.SUCCESS, State.FAILED) or info.cred_info.cred_level != 0:
            self._notify(info, self._request_done)
            return True
        self._start_timer(node.keep, info, Event.SDK_TIMEOUT)
        return True

    def _process_send_request_failed(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        if para is None:
            return False
        reason = int(para)
        info.result = reason
        if reason == ERR_SESSION_OPEN_FAILED:
            info.result = ERR_MSG_OPEN_SESSION
            self._stop_request_timer(info)
            self._notify(info, self._request_done)
            return False
        return self._check_times_and_send(info, False)

    def _process_device_offline(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        info.online_status = ONLINE_STATUS_OFFLINE
        info.query_times = 0
        info.last_offline_time = _millis_since_boot()
        self._stop_request_timer(info)
        self._notify(info, self._request_done)
        return True

    def _process_verify_cred_message(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        info.last_response_time = _millis_since_boot()
        try:
            verify_device_info_response(info, para, self._credentials)
            info.result = SUCCESS
        except DslmError as exc:
            info.result = exc.code
        info.last_verify_time = _millis_since_boot()
        self._notify(info, self._request_done)
        if info.result == SUCCESS:
            self._stop_request_timer(info)
            return True
        self._check_times_and_send(info, False)
        return False

    def _process_sdk_timeout(self, info: DeviceInfo, event: Event, para: Any) -> bool:
        self._notify(info, self._sdk_timeout)
        return True