"""Routing of transport callbacks and the start-up and shut-down of the service."""

from __future__ import annotations

import itertools
import time
from typing import Optional

from .core import DslmCore
from .defines import ERR_INVALID_PARA, DeviceIdentify, DslmError
from .events import EventReporter, Tracer
from .messages import (
    MSG_TYPE_DSLM_CRED_REQUEST,
    MSG_TYPE_DSLM_CRED_RESPONSE,
    parse_message,
)
from .messenger import Messenger

SLEEP_TIME = 0.5
TRY_TIMES = 20


class DslmService:
    """Receives messages from the transport and brings the service up and down."""

    retry_interval: float = SLEEP_TIME

    def __init__(self, core: DslmCore, reporter: Optional[EventReporter] = None) -> None:
        self.core = core
        self.reporter = reporter if reporter is not None else core.reporter
        self.tracer = Tracer()

    def on_peer_message(self, device: Optional[DeviceIdentify], msg: bytes) -> None:
        """Dispatch a raw message from a peer; raise DslmError if it cannot be handled."""
        if device is None or not msg:
            raise DslmError(ERR_INVALID_PARA, "invalid peer message")
        packet = parse_message(msg)
        handlers = {
            MSG_TYPE_DSLM_CRED_REQUEST: self.core.on_peer_request,
            MSG_TYPE_DSLM_CRED_RESPONSE: self.core.on_peer_response,
        }
        handler = handlers.get(packet.type)
        if handler is None:
            raise DslmError(ERR_INVALID_PARA, f"unknown message type {packet.type}")
        handler(device, packet.payload)

    def on_send_result(self, device: Optional[DeviceIdentify], trans_no: int, result: int) -> None:
        """Pass the transport's report on a sent message to the core."""
        self.core.on_send_result(device, trans_no, result)

    def start(self, messenger: Optional[Messenger]) -> bool:
        """Start on a transport and wait for it to become ready.

        Raise DslmError if the transport cannot be used at all; return whether the
        process was initialised before the retries ran out.
        """
        try:
            self.core.messenger.init(messenger)
        except DslmError as exc:
            self.tracer.finish()
            self.reporter.service_start_failed(exc.code)
            raise

        initialized = False
        for attempt in itertools.count():
            self.tracer.count("InitDslmProcess", attempt)
            if self.core.init_process():
                initialized = True
                break
            time.sleep(self.retry_interval)
            if attempt > TRY_TIMES:
                break
        self.tracer.finish()
        return initialized

    def stop(self) -> None:
        """Shut the process down and release the transport."""
        self.core.deinit_process()
        self.core.messenger.deinit()