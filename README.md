# dslm

`dslm` tracks the security level of the devices in a group of connected
devices. It asks each peer for a security credential, checks the challenge
in the answer, passes the credential to a verifier that you supply, keeps a
state machine for every peer, and gives the resulting level to the callers
that asked for it.

The package has no dependencies outside the standard library.

## Modules

- `dslm.defines`: shared types and constants.
  - `DeviceIdentify`: a device identity of at most 64 bytes. Devices are
    only tracked when their identity is exactly 64 bytes long.
  - `DeviceInfo`: everything tracked about one device (state, online
    status, nonce, timestamps, `cred_info`, pending and finished requests).
    Its `machine_id` comes from `generate_machine_id()`, which reads the
    first four characters of the identity as hexadecimal, or gives 0.
  - `CredInfo`, the `State` and `Event` enumerations, the `DslmError`
    exception (with a numeric `code`) and the error code constants.
  - `CredentialProvider`: the interface you implement, with
    `request_cred(device, request)`, `verify_cred(device, challenge, cred)`
    and `init_cred()`; each raises `DslmError` on failure.
  - `current_version()`, `version_major()`, `version_minor()`,
    `version_patch()`.
- `dslm.messages`: `check_message(msg)` accepts only NUL-terminated ASCII
  messages of a bounded size; `parse_message(buff)` returns a
  `MessagePacket` with the message `type` and the `payload` as compact JSON
  text, or raises `DslmError`.
- `dslm.msg_utils`: `build_request(challenge, cred_types)`,
  `parse_request(msg)`, `build_response(challenge, cred)` and
  `parse_response(msg)`, with `RequestObject` and `CredBuff`. The challenge
  travels as the upper-case hex of its 8 little-endian bytes; the credential
  travels base64-encoded. Built messages are NUL-terminated `bytes`.
- `dslm.crypto`: `generate_random(length)` returns at most 32 random bytes.
- `dslm.messenger`: `Messenger` is the transport interface you implement
  (`is_ready`, `send_to`, `device_online_status`, `self_device`).
  `MessengerWrapper` guards it with a lock, drops messages while no
  transport is set, and caches this device's identity.
- `dslm.device_list`: `DeviceRegistry`, a thread-safe registry of
  `DeviceInfo` records, and `is_same_device()`.
- `dslm.inner_process`: `check_and_generate_challenge()`,
  `send_device_info_request()` and `verify_device_info_response()`. A nonce
  is renewed when it is missing or older than 60 seconds.
- `dslm.fsm`: `DslmFsm` drives each device's state machine
  (`schedule(info, event, para)`, `state(info)`). Credential requests are
  resent every 40 seconds while unanswered; at most the last 30 finished
  requests are kept per device. `NotifyNode` is one level request,
  `CallbackInfo` is what its callback receives.
- `dslm.events`: `EventReporter` and `Tracer` pass `SysEvent` and
  `TraceRecord` objects to an optional sink; without a sink they are
  dropped. `build_app_invoke_event()` and `build_info_sync_event()` fill
  `AppInvokeEvent` and `SecurityInfoSyncEvent` from a `DeviceInfo`.
- `dslm.core`: `DslmCore`, the service logic: handling peer requests and
  responses, send results, peer status changes, and level requests, and
  establishing this device's own level.
- `dslm.rpc`: `DslmService` routes raw peer messages to the core and starts
  and stops the service.
- `dslm.dumper`: `dump(core, out)` writes a status report;
  `format_time()` and `format_cost()` format its timestamps.
- `dslm.ipc`: `IpcProcess` and `RemoteHolder` accept level requests from
  clients and route answers back; `normalize_timeout()` replaces a timeout
  outside 1..60 seconds with 45.

## Putting a service together

```python
from dslm.core import DslmCore
from dslm.events import EventReporter
from dslm.ipc import IpcProcess
from dslm.messenger import MessengerWrapper
from dslm.rpc import DslmService

messenger = MessengerWrapper()
reporter = EventReporter(sink=print)
core = DslmCore(messenger, credentials, cred_types, reporter)

service = DslmService(core, reporter)
ready = service.start(transport)  # raises DslmError if transport is None

ipc = IpcProcess(core)


def on_result(cookie, result, info):
    print("cookie", cookie, "result", result, "level", info.level)


ipc.get_device_security_level(device, timeout=45, owner=1, cookie=1, callback=on_result)
```

`credentials` is your `CredentialProvider`, `transport` your `Messenger`,
and `cred_types` the credential types this device supports.
`DslmService.start` retries initialisation every half second (see
`DslmService.retry_interval`) until the transport is ready, and returns
whether it succeeded. `IpcProcess.get_device_security_level` returns the
cookie when the request is accepted and raises `DslmError` when it is
refused; a cookie of 0 is refused.

Hand incoming transport traffic to `service.on_peer_message(device, msg)`,
send outcomes to `service.on_send_result(device, trans_no, result)` and
peer status changes to `core.on_peer_status(device, status, level)`. Call
`service.stop()` to shut down.

When every tracked device has the default OS type, each level request
re-arms an idle timer on `IpcProcess`; after `unload_delay` seconds
(10 by default) `on_idle` is called, if set.

## Inspecting state

```python
import sys
from dslm.dumper import dump

dump(core, sys.stdout)
```

The report holds a self-test of the credential provider, and for each known
device its online and offline times, request and response timings, machine
state, verified level, credential fields and recent request history.

## What the package does not do

- It has no transport: you must supply a `Messenger`.
- It does not create or verify credentials itself: you must supply a
  `CredentialProvider`.
- It runs no server or daemon and has no command-line tool; it is a
  library that you drive from your own process.
- Events and traces are only handed to the sinks you give; nothing is
  stored.