import pytest

from hammer import protocol
from hammer.errors import ProtocolError
from hammer.protocol import Kind


@pytest.mark.parametrize(
    "text, kind",
    [
        ('{"op": 11, "type": "IDENTIFY", "data": {}}', Kind.IDENTIFY),
        ('{"op": 11, "type": "HEARTBEAT_ACK"}', Kind.HEARTBEAT_ACK),
        ('{"op": 11, "type": "READY"}', Kind.UNKNOWN),
        ('{"op": 0, "type": "MESSAGE", "data": {}}', Kind.MESSAGE),
        ('{"op": 1, "data": {"status": 3}}', Kind.STATUS_UPDATE),
        ('{"op": 9, "type": "ERROR", "data": {}}', Kind.CLIENT_ERROR),
        ('{"op": 77}', Kind.UNKNOWN),
        ('{"op": "0"}', Kind.UNKNOWN),
        ('{"op": true}', Kind.UNKNOWN),
        ("{}", Kind.UNKNOWN),
    ],
)
def test_inbound_classification(text, kind):
    assert protocol.parse_frame(text).kind is kind


def test_status_update_and_heartbeat_share_an_opcode_but_not_a_kind():
    inbound = protocol.parse_frame('{"op": 1, "type": "HEARTBEAT", "data": {"status": 1}}')
    outbound = protocol.heartbeat()

    assert inbound.op == outbound["op"] == protocol.Opcode.HEARTBEAT
    assert inbound.kind is Kind.STATUS_UPDATE
    assert outbound["type"] == Kind.HEARTBEAT.value


def test_missing_or_odd_data_becomes_empty():
    assert protocol.parse_frame('{"op": 0}').data == {}
    assert protocol.parse_frame('{"op": 0, "data": [1]}').data == {}


def test_bytes_are_accepted():
    assert protocol.parse_frame(b'{"op": 0, "data": {"channel": "1"}}').data == {"channel": "1"}


@pytest.mark.parametrize("text", ["", "nope", "{'op': 0}", "[]", "null", "3", b"\xff\xfe\x00"])
def test_invalid_frames(text):
    with pytest.raises(ProtocolError):
        protocol.parse_frame(text)


def test_deeply_nested_frame_is_invalid():
    with pytest.raises(ProtocolError):
        protocol.parse_frame("[" * 200000 + "]" * 200000)


def test_outbound_frames():
    assert protocol.hello() == {"op": 10, "type": "HELLO", "data": {"message": "Authorized"}}
    assert protocol.ready() == {"op": 12, "type": "READY", "data": {}}
    assert protocol.error("x") == {"op": 9, "type": "ERROR", "data": {"message": "x"}}


def test_encode_keeps_unicode():
    assert protocol.encode({"data": "héllo"}) == '{"data":"héllo"}'
