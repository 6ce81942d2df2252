from dslm.defines import (
    DEFAULT_OS_TYPE,
    UINT32_MAX,
    DeviceIdentify,
    State,
    generate_machine_id,
)
from dslm.device_list import MAX_DEVICE_CNT, DeviceRegistry, is_same_device


def _ident(n):
    return DeviceIdentify(f"{n:04X}".encode("ascii").ljust(64, b"0"))


def test_create_new_device():
    registry = DeviceRegistry()
    device = _ident(0x1A2B)
    info = registry.create_or_get(device)
    assert info.identity == device
    assert info.result == UINT32_MAX
    assert info.state == State.INIT
    assert info.machine_id == generate_machine_id(device)
    assert len(registry) == 1


def test_create_returns_existing():
    registry = DeviceRegistry()
    first = registry.create_or_get(_ident(1))
    second = registry.create_or_get(_ident(1))
    assert first is second
    assert len(registry) == 1


def test_create_rejects_wrong_length():
    registry = DeviceRegistry()
    assert registry.create_or_get(DeviceIdentify(b"short")) is None
    assert registry.create_or_get(None) is None
    assert len(registry) == 0


def test_get():
    registry = DeviceRegistry()
    info = registry.create_or_get(_ident(2))
    assert registry.get(_ident(2)) is info
    assert registry.get(_ident(3)) is None
    assert registry.get(None) is None


def test_capacity_limit():
    registry = DeviceRegistry()
    created = [registry.create_or_get(_ident(n)) for n in range(MAX_DEVICE_CNT + 1)]
    assert all(info is not None for info in created)
    assert len(registry) == MAX_DEVICE_CNT + 1
    assert registry.create_or_get(_ident(MAX_DEVICE_CNT + 5)) is None
    assert registry.create_or_get(_ident(0)) is created[0]


def test_iteration_keeps_insertion_order():
    registry = DeviceRegistry()
    devices = [_ident(n) for n in (5, 3, 9)]
    for device in devices:
        registry.create_or_get(device)
    assert [info.identity for info in registry] == devices


def test_is_same_device():
    assert is_same_device(_ident(1), _ident(1)) is True
    assert is_same_device(_ident(1), _ident(2)) is False
    assert is_same_device(DeviceIdentify(b"ab"), DeviceIdentify(b"abc")) is False
    assert is_same_device(None, _ident(1)) is False
    assert is_same_device(_ident(1), None) is False


def test_all_default_type():
    registry = DeviceRegistry()
    assert registry.all_default_type() is True
    first = registry.create_or_get(_ident(1))
    second = registry.create_or_get(_ident(2))
    first.os_type = DEFAULT_OS_TYPE
    second.os_type = DEFAULT_OS_TYPE
    assert registry.all_default_type() is True
    second.os_type = 0
    assert registry.all_default_type() is False