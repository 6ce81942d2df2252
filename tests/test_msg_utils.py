import pytest

from dslm.defines import (
    ERR_INVALID_PARA,
    ERR_NO_CHALLENGE,
    ERR_NO_CRED,
    MAX_CRED_ARRAY_SIZE,
    DslmError,
    current_version,
)
from dslm.messages import (
    MSG_TYPE_DSLM_CRED_REQUEST,
    MSG_TYPE_DSLM_CRED_RESPONSE,
    check_message,
    parse_message,
)
from dslm.msg_utils import (
    CredBuff,
    RequestObject,
    build_request,
    build_response,
    parse_request,
    parse_response,
)

SOURCE_JSON = '{"version":131072,"challenge":"3C1F21EE53D3C4E2","type":2}'


def test_build_request_wire_format():
    wire = build_request(0x0102030405060708, [3000])
    assert wire == (
        b'{"message":1,"payload":{"version":196608,'
        b'"challenge":"0807060504030201","support":[3000]}}\0'
    )


def test_build_request_is_valid_message():
    assert check_message(build_request(42, [1, 2]))


def test_request_round_trip():
    packet = parse_message(build_request(0xDEADBEEF12345678, [1000, 3000]))
    assert packet.type == MSG_TYPE_DSLM_CRED_REQUEST
    request = parse_request(packet.payload)
    assert request == RequestObject(current_version(), 0xDEADBEEF12345678, (1000, 3000))


def test_request_cred_types_truncated():
    packet = parse_message(build_request(1, range(MAX_CRED_ARRAY_SIZE + 5)))
    request = parse_request(packet.payload)
    assert len(request.cred_types) == MAX_CRED_ARRAY_SIZE


def test_build_request_rejects_out_of_range_challenge():
    with pytest.raises(ValueError):
        build_request(2**64, [])
    with pytest.raises(ValueError):
        build_request(-1, [])


def test_parse_request_source_sample():
    request = parse_request(SOURCE_JSON)
    assert request.version == 131072
    assert request.cred_types == ()
    assert b'"challenge":"3C1F21EE53D3C4E2"' in build_request(request.challenge, [])


def test_parse_request_accepts_bytes():
    assert parse_request(SOURCE_JSON.encode() + b"\0") == parse_request(SOURCE_JSON)


def test_parse_request_skips_non_numbers():
    msg = '{"challenge":"3C1F21EE53D3C4E2","support":["3C1F21EE53D3C4E2","elem2",3,4,5]}'
    assert parse_request(msg).cred_types == (3, 4, 5)


@pytest.mark.parametrize(
    "msg",
    [
        '{"version":1}',
        '{"challenge":5}',
        '{"challenge":"test challenge"}',
        '{"challenge":"3C1F21EE53D3C4E2AA"}',
    ],
)
def test_parse_request_bad_challenge(msg):
    with pytest.raises(DslmError) as exc:
        parse_request(msg)
    assert exc.value.code == ERR_NO_CHALLENGE


def test_parse_request_not_json():
    with pytest.raises(DslmError) as exc:
        parse_request("not json")
    assert exc.value.code == ERR_INVALID_PARA


def test_response_round_trip():
    cred = CredBuff(2, b"hello credential")
    packet = parse_message(build_response(0x1122334455667788, cred))
    assert packet.type == MSG_TYPE_DSLM_CRED_RESPONSE
    assert parse_response(packet.payload) == (0x1122334455667788, current_version(), cred)


def test_response_with_empty_credential_has_no_info():
    packet = parse_message(build_response(7, CredBuff(2, b"")))
    with pytest.raises(DslmError) as exc:
        parse_response(packet.payload)
    assert exc.value.code == ERR_NO_CRED


def test_parse_response_missing_info():
    with pytest.raises(DslmError) as exc:
        parse_response(SOURCE_JSON)
    assert exc.value.code == ERR_NO_CRED


def test_parse_response_bad_base64():
    msg = '{"challenge":"3C1F21EE53D3C4E2","type":2,"info":"!!!"}'
    with pytest.raises(DslmError) as exc:
        parse_response(msg)
    assert exc.value.code == ERR_NO_CRED


def test_parse_response_missing_challenge():
    with pytest.raises(DslmError) as exc:
        parse_response('{"type":2,"info":"aGVsbG8="}')
    assert exc.value.code == ERR_NO_CHALLENGE


def test_parse_response_reads_type_and_version():
    challenge, version, cred = parse_response(
        '{"version":131072,"challenge":"3C1F21EE53D3C4E2","type":2,"info":"aGVsbG8="}'
    )
    assert version == 131072
    assert cred == CredBuff(2, b"hello")
    assert parse_request(SOURCE_JSON).challenge == challenge