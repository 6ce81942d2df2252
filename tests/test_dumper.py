import datetime
import io

from dslm.core import DslmCore
from dslm.defines import (
    CRED_TYPE_STANDARD,
    ERR_OEM_ERR,
    CredInfo,
    DeviceIdentify,
    DslmError,
)
from dslm.dumper import (
    NOTIFY_NODE_MAX_CNT,
    SPLIT_LINE,
    dump,
    format_cost,
    format_time,
)
from dslm.fsm import NotifyNode
from dslm.messenger import MessengerWrapper
from dslm.msg_utils import CredBuff

PEER_ID = DeviceIdentify(b"ABCD" + b"1" * 60)


class FakeCredentials:
    def __init__(self, fail=False):
        self.fail = fail

    def request_cred(self, device, request):
        if self.fail:
            raise DslmError(ERR_OEM_ERR)
        return CredBuff(3000, b"cred")

    def verify_cred(self, device, challenge, cred):
        return CredInfo(cred_level=3)

    def init_cred(self):
        return CredInfo()


def make_core(fail=False):
    return DslmCore(MessengerWrapper(), FakeCredentials(fail), (3000,))


def run_dump(core):
    out = io.StringIO()
    dump(core, out)
    return out.getvalue()


def test_format_time_unknown():
    assert format_time(0) == "-"


def test_format_time_shape():
    text = format_time(123456)
    assert len(text) == 23
    parsed = datetime.datetime.strptime(text, "%Y-%m-%d %H:%M:%S.%f")
    rebuilt = parsed.strftime("%Y-%m-%d %H:%M:%S.") + f"{parsed.microsecond // 1000:03d}"
    assert rebuilt == text


def test_format_cost_missing_or_reversed():
    assert format_cost(0, 5) == ""
    assert format_cost(5, 0) == ""
    assert format_cost(10, 5) == ""


def test_format_cost_value():
    assert format_cost(100, 350) == "(cost 250ms)"


def test_dump_banner_and_default_status():
    text = run_dump(make_core())
    lines = text.splitlines()
    assert lines[0] == " ___  ___ _    __  __   ___  _   _ __  __ ___ ___ ___ "
    assert lines[4] == SPLIT_LINE
    assert "REQUEST_TEST              : success\n" in text
    assert "VERIFY_TEST               : success\n" in text
    assert "SELF_CRED_LEVEL           : 3\n" in text
    assert "please check the system time" not in text


def test_dump_default_status_failed():
    text = run_dump(make_core(fail=True))
    assert "REQUEST_TEST              : failed\n" in text
    assert "VERIFY_TEST               : failed\n" in text
    assert "SELF_CRED_LEVEL           : 0\n" in text


def test_dump_device_details():
    core = make_core()
    info = core.devices.create_or_get(PEER_ID)
    info.cred_info.cred_type = CRED_TYPE_STANDARD
    info.cred_info.model = "model-x"
    text = run_dump(core)
    assert "DEVICE_ID                 : abcd\n" in text
    assert "DEVICE_ONLINE_STATUS      : offline\n" in text
    assert "DEVICE_ONLINE_TIME        : -\n" in text
    assert "DEVICE_MACHINE_STATUS     : STATE_INIT\n" in text
    assert "DEVICE_VERIFIED_RESULT    : failed\n" in text
    assert "CRED_TYPE                 : standard\n" in text
    assert "CRED_MODEL                : model-x\n" in text
    assert "SDK_CALL_HISTORY: \n" in text


def test_dump_unknown_cred_type_and_pending_count():
    core = make_core()
    info = core.devices.create_or_get(PEER_ID)
    info.notify_list.extend(NotifyNode(owner=1, cookie=i + 1, callback=None) for i in range(3))
    text = run_dump(core)
    assert "CRED_TYPE                 : default\n" in text
    assert "DEVICE_PENDING_CNT        : 3\n" in text


def test_dump_history_line():
    core = make_core()
    info = core.devices.create_or_get(PEER_ID)
    info.history_list.append(NotifyNode(owner=7, cookie=9, callback=None))
    text = run_dump(core)
    history = [line for line in text.splitlines() if line.startswith("#")]
    assert len(history) == 1
    assert history[0].startswith("#1    pid:7      seq:9    req:-")
    assert history[0].endswith("ret:0    cost:0ms")


def test_dump_history_capped():
    core = make_core()
    info = core.devices.create_or_get(PEER_ID)
    info.history_list.extend(
        NotifyNode(owner=1, cookie=i + 1, callback=None) for i in range(NOTIFY_NODE_MAX_CNT + 6)
    )
    text = run_dump(core)
    history = [line for line in text.splitlines() if line.startswith("#")]
    assert len(history) == NOTIFY_NODE_MAX_CNT


def test_dump_one_block_per_device():
    core = make_core()
    core.devices.create_or_get(PEER_ID)
    core.devices.create_or_get(DeviceIdentify(b"1234" + b"2" * 60))
    text = run_dump(core)
    assert text.count("SDK_CALL_HISTORY: ") == 2
    assert text.count(SPLIT_LINE + "\n") == 2 + 2 * 2