"""
The gateway wire protocol.

Every frame is a JSON object of the form
``{"op": int, "type": str, "data": object}``. Opcodes are shared
between several logical kinds of frame; most notably, opcode 1 is a
server heartbeat when sent by the server and a status update when
sent by a client. Inbound frames are classified into a Kind, so that
each logical kind is handled on its own path.

    >>> frame = parse_frame('{"op": 11, "type": "IDENTIFY", "data": {"heartbeat_interval": 5000}}')
    >>> frame.kind
    <Kind.IDENTIFY: 'IDENTIFY'>
    >>> parse_frame('{"op": 1, "data": {"status": 2}}').kind
    <Kind.STATUS_UPDATE: 'STATUS_UPDATE'>
    >>> encode(error("Invalid status!"))
    '{"op":9,"type":"ERROR","data":{"message":"Invalid status!"}}'
"""

import enum
import json
import typing

import attr

from .errors import ProtocolError
from .structures import Channel, Message


class Opcode(enum.IntEnum):
    DISPATCH = 0
    HEARTBEAT = 1
    ERROR = 9
    HELLO = 10
    IDENTIFY = 11
    READY = 12


class Kind(enum.Enum):
    """The logical kinds of frame, as handled internally."""

    # client -> server
    IDENTIFY = "IDENTIFY"
    HEARTBEAT_ACK = "HEARTBEAT_ACK"
    MESSAGE = "MESSAGE"
    STATUS_UPDATE = "STATUS_UPDATE"
    CLIENT_ERROR = "CLIENT_ERROR"
    UNKNOWN = "UNKNOWN"

    # server -> client
    HELLO = "HELLO"
    READY = "READY"
    HEARTBEAT = "HEARTBEAT"
    ERROR = "ERROR"
    CHANNEL_JOIN = "CHANNEL_JOIN"
    CHANNEL_LEAVE = "CHANNEL_LEAVE"


# Error messages sent back to clients.
INVALID_JSON = "You've sent invalid JSON!"
MISSING_CHANNEL = "You've sent a message without a channel!"
UNKNOWN_CHANNEL = "That channel does not exist!"
NOT_A_MEMBER = "You are not in that channel!"
EMPTY_MESSAGE = "You can't send an empty message!"
INVALID_STATUS = "Invalid status!"

MIN_STATUS = 0
MAX_STATUS = 4


@attr.s(auto_attribs=True, frozen=True)
class Frame:
    """A decoded inbound frame."""

    op: typing.Optional[int]
    type: typing.Optional[str]
    data: dict = attr.Factory(dict)

    @property
    def kind(self) -> Kind:
        return classify(self.op, self.type)


def classify(op: typing.Optional[int], type: typing.Optional[str]) -> Kind:
    """Classifies an inbound frame by its opcode (and type, where the opcode is shared)."""

    if op == Opcode.IDENTIFY:
        if type == "IDENTIFY":
            return Kind.IDENTIFY

        if type == "HEARTBEAT_ACK":
            return Kind.HEARTBEAT_ACK

        return Kind.UNKNOWN

    if op == Opcode.DISPATCH:
        return Kind.MESSAGE

    if op == Opcode.HEARTBEAT:
        return Kind.STATUS_UPDATE

    if op == Opcode.ERROR:
        return Kind.CLIENT_ERROR

    return Kind.UNKNOWN


def parse_frame(text: typing.Union[str, bytes]) -> Frame:
    """Decodes a transport frame into a Frame.

    Arguments:
        text {str | bytes} -- The raw frame, as UTF-8 JSON.

    Raises:
        ProtocolError: The frame is not a JSON object.

    Returns:
        Frame -- The decoded frame. A missing or non-object 'data' becomes
                 an empty dict, and a non-integer 'op' becomes None.
    """

    try:
        obj = json.loads(text)

    except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as err:
        raise ProtocolError("Invalid JSON frame: {}".format(err)) from err

    if not isinstance(obj, dict):
        raise ProtocolError("Frame is not a JSON object")

    op = obj.get("op")

    if isinstance(op, bool) or not isinstance(op, int):
        op = None

    type_ = obj.get("type")

    if not isinstance(type_, str):
        type_ = None

    data = obj.get("data")

    if not isinstance(data, dict):
        data = {}

    return Frame(op, type_, data)


def encode(frame: dict) -> str:
    """Serializes an outbound frame to compact JSON."""
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def _frame(op: Opcode, kind: Kind, data: typing.Any) -> dict:
    return {"op": int(op), "type": kind.value, "data": data}


def hello() -> dict:
    return _frame(Opcode.HELLO, Kind.HELLO, {"message": "Authorized"})


def ready() -> dict:
    return _frame(Opcode.READY, Kind.READY, {})


def heartbeat() -> dict:
    return _frame(Opcode.HEARTBEAT, Kind.HEARTBEAT, None)


def error(message: str) -> dict:
    return _frame(Opcode.ERROR, Kind.ERROR, {"message": message})


def message(msg: Message) -> dict:
    return _frame(Opcode.DISPATCH, Kind.MESSAGE, msg.to_json())


def channel_join(channel: Channel) -> dict:
    return _frame(Opcode.DISPATCH, Kind.CHANNEL_JOIN, {"channel": channel.to_json()})


def channel_leave(channel: Channel) -> dict:
    return _frame(Opcode.DISPATCH, Kind.CHANNEL_LEAVE, {"channel": channel.to_json()})
