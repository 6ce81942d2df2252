"""A human-readable dump of the service's state."""

from __future__ import annotations

import time
from datetime import datetime
from typing import TextIO

from .core import DslmCore
from .defines import (
    CRED_TYPE_LARGE,
    CRED_TYPE_MINI,
    CRED_TYPE_SMALL,
    CRED_TYPE_STANDARD,
    MAX_CRED_ARRAY_SIZE,
    SUCCESS,
    DeviceInfo,
    DslmError,
    State,
    current_version,
)
from .msg_utils import RequestObject

SPLIT_LINE = "------------------------------------------------------"
NOTIFY_NODE_MAX_CNT = 1024
YEAR_TIME_2023 = 1699977600
_LABEL_WIDTH = 26

_BANNER = (
    " ___  ___ _    __  __   ___  _   _ __  __ ___ ___ ___ ",
    "|   \\/ __| |  |  \\/  | |   \\| | | |  \\/  | _ \\ __| _ \\",
    "| |) \\__ \\ |__| |\\/| | | |) | |_| | |\\/| |  _/ __|   /",
    "|___/|___/____|_|  |_| |___/ \\___/|_|  |_|_| |___|_|_\\",
)

_CRED_TYPE_NAMES = {
    CRED_TYPE_MINI: "mini",
    CRED_TYPE_SMALL: "small",
    CRED_TYPE_STANDARD: "standard",
    CRED_TYPE_LARGE: "large",
}


def format_time(timestamp: int) -> str:
    """Local date and time of a milliseconds-since-boot timestamp; "-" if unknown."""
    if timestamp == 0:
        return "-"
    boot_ms = time.time() * 1000 - time.monotonic() * 1000
    try:
        dt = datetime.fromtimestamp((boot_ms + timestamp) / 1000)
    except (OverflowError, OSError, ValueError):
        return "-"
    return (
        f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}"
    )


def format_cost(begin: int, end: int) -> str:
    """"(cost Nms)" between two timestamps, or "" when either is unknown or out of order."""
    if begin == 0 or end == 0 or end < begin:
        return ""
    return f"(cost {(end - begin) & 0xFFFFFFFF}ms)"


def _line(label: str, value: object) -> str:
    return f"{label:<{_LABEL_WIDTH}}: {value}\n"


def _state_name(info: DeviceInfo) -> str:
    try:
        return f"STATE_{State(info.state).name}"
    except ValueError:
        return "STATE_UNKOWN"


def _pending_count(info: DeviceInfo) -> int:
    with info.lock:
        return min(len(info.notify_list), NOTIFY_NODE_MAX_CNT)


def _default_status(core: DslmCore) -> tuple[bool, bool, int]:
    device, _ = core.messenger.self_device()
    request = RequestObject(
        version=current_version(),
        challenge=0,
        cred_types=core.cred_types[:MAX_CRED_ARRAY_SIZE],
    )
    try:
        cred = core.credentials.request_cred(device, request)
    except DslmError:
        return False, False, 0
    try:
        info = core.credentials.verify_cred(device, request.challenge, cred)
    except DslmError:
        return True, False, 0
    return True, True, info.cred_level


def _write_default_status(core: DslmCore, out: TextIO) -> None:
    request_ok, verify_ok, level = _default_status(core)
    notice = "(please check the system time)" if time.time() <= YEAR_TIME_2023 else ""
    out.write(SPLIT_LINE + "\n")
    out.write(_line("REQUEST_TEST", "success" if request_ok else "failed"))
    out.write(_line("VERIFY_TEST", ("success" if verify_ok else "failed") + notice))
    out.write(_line("SELF_CRED_LEVEL", level))
    out.write(SPLIT_LINE + "\n")


def _write_device_details(info: DeviceInfo, out: TextIO) -> None:
    cred = info.cred_info
    out.write(_line("DEVICE_ID", f"{info.machine_id:x}"))
    out.write("\n")
    out.write(_line("DEVICE_ONLINE_STATUS", "online" if info.online_status != 0 else "offline"))
    out.write(_line("DEVICE_ONLINE_TIME", format_time(info.last_online_time)))
    out.write(_line("DEVICE_OFFLINE_TIME", format_time(info.last_offline_time)))
    out.write(_line("DEVICE_REQUEST_TIME", format_time(info.last_request_time)))
    out.write(
        _line(
            "DEVICE_RESPONSE_TIME",
            format_time(info.last_response_time)
            + format_cost(info.last_request_time, info.last_response_time),
        )
    )
    out.write(
        _line(
            "DEVICE_VERIFY_TIME",
            format_time(info.last_verify_time)
            + format_cost(info.last_response_time, info.last_verify_time),
        )
    )
    out.write("\n")
    out.write(_line("DEVICE_PENDING_CNT", _pending_count(info)))
    out.write(_line("DEVICE_MACHINE_STATUS", _state_name(info)))
    out.write(_line("DEVICE_VERIFIED_LEVEL", cred.cred_level))
    out.write(_line("DEVICE_VERIFIED_RESULT", "success" if info.result == 0 else "failed"))
    out.write("\n")
    out.write(_line("CRED_TYPE", _CRED_TYPE_NAMES.get(cred.cred_type, "default")))
    out.write(_line("CRED_RELEASE_TYPE", cred.release_type))
    out.write(_line("CRED_SIGN_TIME", cred.sign_time))
    out.write(_line("CRED_MANUFACTURE", cred.manufacture))
    out.write(_line("CRED_BAND", cred.brand))
    out.write(_line("CRED_MODEL", cred.model))
    out.write(_line("CRED_SOFTWARE_VERSION", cred.software_version))
    out.write(_line("CRED_SECURITY_LEVEL", cred.security_level))
    out.write(_line("CRED_VERSION", cred.version))
    out.write("\n")


def _write_history(info: DeviceInfo, out: TextIO) -> None:
    out.write("SDK_CALL_HISTORY: \n")
    with info.lock:
        history = list(info.history_list[:NOTIFY_NODE_MAX_CNT])
    for index, node in enumerate(history, start=1):
        cost = (node.stop - node.start) & 0xFFFFFFFF if node.stop > node.start else 0
        out.write(
            f"#{index:<4d} pid:{node.owner:<6d} seq:{node.cookie:<4d} "
            f"req:{format_time(node.start):<26s} res:{format_time(node.stop):<26s} "
            f"ret:{node.result & 0xFFFFFFFF:<4d} cost:{cost}ms\n"
        )


def dump(core: DslmCore, out: TextIO) -> None:
    """Write the banner, a self-test of the credential provider and every device."""
    for line in _BANNER:
        out.write(line + "\n")
    _write_default_status(core, out)
    for info in core.devices:
        out.write(SPLIT_LINE + "\n")
        _write_device_details(info, out)
        _write_history(info, out)
        out.write(SPLIT_LINE + "\n")