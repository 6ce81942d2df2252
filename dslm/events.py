"""System event reporting and trace points of the service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .defines import ERR_NEED_COMPATIBLE, DeviceInfo, current_version

MODEL_MAX_LEN = 128
PKG_NAME_MAX_LEN = 256

DOMAIN = "DSLM"

EVENT_START_FAILED = "SERVICE_START_FAILED"
EVENT_INIT_SELF_LEVEL_FAULT = "INIT_SELF_LEVEL_FAULT"
EVENT_CALL_INTERFACE = "CALL_INTERFACE"
EVENT_QUERY_INFO = "QUERY_INFO"


class EventType(Enum):
    """Kinds of system events."""

    FAULT = "FAULT"
    STATISTIC = "STATISTIC"


@dataclass
class SysEvent:
    """One written system event."""

    domain: str
    name: str
    type: EventType
    params: dict[str, Any]


@dataclass
class AppInvokeEvent:
    """Statistics about an application asking for a device's level."""

    uid: int = 0
    cost_time: int = 0
    ret_code: int = 0
    sec_level: int = 0
    ret_mode: int = 0
    local_model: str = ""
    target_model: str = ""
    pkg_name: str = ""


@dataclass
class SecurityInfoSyncEvent:
    """Statistics about a credential exchange with a peer."""

    local_model: str = ""
    target_model: str = ""
    local_version: int = 0
    target_version: int = 0
    cred_type: int = 0
    ret_code: int = 0
    cost_time: int = 0
    sec_level: int = 0


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 2**32 if value >= 2**31 else value


def _cost(info: DeviceInfo) -> int:
    if info.last_response_time >= info.last_request_time:
        return _int32(info.last_response_time - info.last_request_time)
    return 0


def _model(info: DeviceInfo) -> str:
    return info.cred_info.model[: MODEL_MAX_LEN - 1]


def build_info_sync_event(info: DeviceInfo) -> SecurityInfoSyncEvent:
    """The sync statistics describing a device's latest credential exchange."""
    return SecurityInfoSyncEvent(
        target_model=_model(info),
        local_version=current_version(),
        target_version=info.version,
        cred_type=info.cred_info.cred_type,
        ret_code=_int32(info.result),
        cost_time=_cost(info),
        sec_level=_int32(info.cred_info.cred_level),
    )


def build_app_invoke_event(info: DeviceInfo) -> AppInvokeEvent:
    """The invocation statistics for a level request about a device."""
    return AppInvokeEvent(
        uid=0,
        cost_time=_cost(info),
        ret_code=_int32(info.result),
        sec_level=_int32(info.cred_info.cred_level),
        ret_mode=1 if info.result == ERR_NEED_COMPATIBLE else 0,
        target_model=_model(info),
    )


class EventReporter:
    """Writes system events to a sink; without a sink events are dropped."""

    def __init__(self, sink: Optional[Callable[[SysEvent], Any]] = None) -> None:
        self._sink = sink

    def _write(self, name: str, event_type: EventType, params: dict[str, Any]) -> None:
        if self._sink is not None:
            self._sink(SysEvent(DOMAIN, name, event_type, params))

    def service_start_failed(self, error_type: int) -> None:
        self._write(EVENT_START_FAILED, EventType.FAULT, {"ERROR_TYPE": error_type})

    def init_self_failed(self, message: str) -> None:
        self._write(EVENT_INIT_SELF_LEVEL_FAULT, EventType.FAULT, {"ERROR_STR": message})

    def app_invoke(self, event: Optional[AppInvokeEvent]) -> None:
        if event is None:
            return
        self._write(
            EVENT_CALL_INTERFACE,
            EventType.STATISTIC,
            {
                "USER_ID": event.uid,
                "COST_TIME": event.cost_time,
                "RET_CODE": event.ret_code,
                "SEC_LEVEL": event.sec_level,
                "RET_MODE": event.ret_mode,
                "LOCAL_MODEL": event.local_model,
                "TARGET_MODEL": event.target_model,
                "PKG_NAME": event.pkg_name,
            },
        )

    def info_sync(self, event: Optional[SecurityInfoSyncEvent]) -> None:
        if event is None:
            return
        self._write(
            EVENT_QUERY_INFO,
            EventType.STATISTIC,
            {
                "LOCAL_MODEL": event.local_model,
                "TARGET_MODEL": event.target_model,
                "LOCAL_VERSION": event.local_version,
                "TARGET_VERSION": event.target_version,
                "CRED_TYPE": event.cred_type,
                "RET_CODE": event.ret_code,
                "COST_TIME": event.cost_time,
                "SEC_LEVEL": event.sec_level,
            },
        )


class TraceKind(Enum):
    """Kinds of trace records."""

    START = "start"
    FINISH = "finish"
    START_ASYNC = "start_async"
    FINISH_ASYNC = "finish_async"
    COUNT = "count"


@dataclass
class TraceRecord:
    """One trace point: its kind, its label and an async task id or a counter value."""

    kind: TraceKind
    value: str = ""
    number: Optional[int] = field(default=None)


class Tracer:
    """Emits trace records to a sink; without a sink they are dropped."""

    def __init__(self, sink: Optional[Callable[[TraceRecord], Any]] = None) -> None:
        self._sink = sink

    def _emit(self, record: TraceRecord) -> None:
        if self._sink is not None:
            self._sink(record)

    def start(self, value: str) -> None:
        self._emit(TraceRecord(TraceKind.START, value))

    def start_state_machine(self, machine_id: int, event: int) -> None:
        self._emit(TraceRecord(TraceKind.START, f"StartStateMachine_{machine_id}_{int(event)}"))

    def finish(self) -> None:
        self._emit(TraceRecord(TraceKind.FINISH))

    def start_async(self, value: str, owner: int, cookie: int) -> None:
        self._emit(TraceRecord(TraceKind.START_ASYNC, f"{value}_{owner}_{cookie}", cookie))

    def finish_async(self, value: str, owner: int, cookie: int) -> None:
        self._emit(TraceRecord(TraceKind.FINISH_ASYNC, f"{value}_{owner}_{cookie}", cookie))

    def count(self, name: str, count: int) -> None:
        self._emit(TraceRecord(TraceKind.COUNT, name, count))