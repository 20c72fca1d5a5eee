"""Hex frame codec for the Devola serial protocol.

The heater speaks a fixed 17-byte payload framed as hex text by the Tasmota
serial bridge. Commands go out as ``F1F1 <payload> <checksum> 7E`` and status
reports come back as ``F2F2 <payload> <checksum> 7E`` wrapped in a JSON
``SSerialReceived`` envelope.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple, Union

from ..errors import ChecksumError, MalformedFrameError
from .models import CommandKind, OnOff, Power, StatusFrame

COMMAND_PREFIX = "F1F1"
STATUS_PREFIX = "F2F2"
TRAILER = "7E"
ENVELOPE_KEY = "SSerialReceived"


@dataclass(frozen=True, slots=True)
class FrameField:
    """One slot of the payload layout.

    Constant slots carry ``value``; semantic slots carry ``None`` and are
    filled from the caller's field values.
    """

    name: str
    width: int
    value: Optional[int] = None

    @property
    def hex_width(self) -> int:
        return self.width * 2

    @property
    def is_constant(self) -> bool:
        return self.value is not None


PAYLOAD_LAYOUT: Tuple[FrameField, ...] = (
    FrameField("header", 2, 0x0210),
    FrameField("power", 1),
    FrameField("childlock", 1),
    FrameField("marker", 4, 0x02001900),
    FrameField("mode", 1),
    FrameField("setpoint", 1),
    FrameField("timer", 2),
    FrameField("temp", 1),
    FrameField("footer", 4, 0x01000001),
)

PAYLOAD_BYTES = sum(item.width for item in PAYLOAD_LAYOUT)
PAYLOAD_HEX_LENGTH = PAYLOAD_BYTES * 2
FRAME_LENGTH = len(COMMAND_PREFIX) + PAYLOAD_HEX_LENGTH + 2 + len(TRAILER)

# Status frames carry the timer in the low byte of its slot, offset by one.
MAX_TIMER = 0xFF - 1

_HEX_DIGITS = frozenset("0123456789ABCDEF")


def checksum(payload_hex: str) -> str:
    """Return the two-digit checksum of a payload given as hex text.

    The checksum is the sum of the byte values modulo 256.
    """

    if len(payload_hex) % 2:
        raise ValueError("payload must contain whole bytes")
    total = sum(bytes.fromhex(payload_hex))
    return f"{total & 0xFF:02X}"


def render_payload(values: Mapping[str, int]) -> str:
    """Render the payload hex text for the given semantic field values.

    Missing semantic fields are rendered as zero.
    """

    parts = []
    for item in PAYLOAD_LAYOUT:
        value = item.value if item.is_constant else int(values.get(item.name, 0))
        if value < 0 or value >= 1 << (8 * item.width):
            raise ValueError(
                f"{item.name}={value} does not fit in {item.width} byte(s)"
            )
        parts.append(f"{value:0{item.hex_width}x}")
    return "".join(parts)


def parse_payload(payload_hex: str) -> dict[str, int]:
    """Split payload hex text into semantic field values.

    Raises MalformedFrameError when the length or a constant slot does not
    match the layout.
    """

    if len(payload_hex) != PAYLOAD_HEX_LENGTH:
        raise MalformedFrameError(
            f"payload has {len(payload_hex)} hex digits, expected {PAYLOAD_HEX_LENGTH}"
        )

    values: dict[str, int] = {}
    offset = 0
    for item in PAYLOAD_LAYOUT:
        chunk = payload_hex[offset : offset + item.hex_width]
        offset += item.hex_width
        value = int(chunk, 16)
        if item.is_constant:
            if value != item.value:
                raise MalformedFrameError(
                    f"unexpected {item.name} {chunk!r} in frame"
                )
            continue
        values[item.name] = value
    return values


def encode(
    power: int,
    childlock: int,
    mode: int,
    setpoint: int,
    timer: int,
    temp: int = 0,
) -> str:
    """Build a command frame from raw wire values.

    ``timer`` is the wire value; callers holding a user-facing timer add one
    first (see :func:`encode_command`). Values must fit their slots; domain
    ranges are the caller's responsibility.
    """

    payload = render_payload(
        {
            "power": power,
            "childlock": childlock,
            "mode": mode,
            "setpoint": setpoint,
            "timer": timer,
            "temp": temp,
        }
    )
    return f"{COMMAND_PREFIX}{payload}{checksum(payload)}{TRAILER}"


def encode_command(kind: CommandKind, value: int) -> str:
    """Build the frame that sets a single field, all other slots zeroed."""

    if kind == CommandKind.CHILDLOCK:
        return encode(0, value, 0, 0, 0)
    if kind == CommandKind.MODE:
        return encode(0, 0, value, 0, 0)
    if kind == CommandKind.SETPOINT:
        return encode(0, 0, 0, value, 0)
    if kind == CommandKind.TIMER:
        if not 0 <= value <= MAX_TIMER:
            raise ValueError(f"TIMER={value} outside 0..{MAX_TIMER}")
        return encode(0, 0, 0, 0, value + 1)
    raise ValueError(f"{kind.value} is not carried in a serial frame")


def decode(frame: str, *, strict_checksum: bool = False) -> StatusFrame:
    """Decode a ``F2F2`` status frame into field values.

    Matching is case-insensitive. The received checksum is only verified
    when ``strict_checksum`` is set.
    """

    text = frame.strip().upper()
    if len(text) != FRAME_LENGTH or not set(text) <= _HEX_DIGITS:
        raise MalformedFrameError(f"frame {frame!r} is not {FRAME_LENGTH} hex digits")
    if not text.startswith(STATUS_PREFIX) or not text.endswith(TRAILER):
        raise MalformedFrameError(f"frame {frame!r} lacks status prefix or trailer")

    body = text[len(STATUS_PREFIX) : -len(TRAILER)]
    payload_hex, received = body[:-2], body[-2:]
    values = parse_payload(payload_hex)

    if strict_checksum:
        expected = checksum(payload_hex)
        if received != expected:
            raise ChecksumError(
                f"checksum {received} does not match computed {expected}"
            )

    return StatusFrame(
        power=Power.from_wire(values["power"]),
        childlock=OnOff.from_wire(values["childlock"]),
        mode=values["mode"],
        setpoint=values["setpoint"],
        timer=max((values["timer"] & 0xFF) - 1, 0),
        temp=values["temp"],
    )


def decode_status_payload(
    payload: Union[str, bytes], *, strict_checksum: bool = False
) -> StatusFrame:
    """Decode the JSON envelope Tasmota publishes on ``tele/<id>/RESULT``."""

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrameError("payload is not valid UTF-8") from exc

    try:
        document = json.loads(payload)
    except ValueError as exc:
        raise MalformedFrameError(f"payload is not JSON: {payload!r}") from exc

    if not isinstance(document, dict) or not isinstance(
        document.get(ENVELOPE_KEY), str
    ):
        raise MalformedFrameError(f"payload has no {ENVELOPE_KEY} frame")

    return decode(document[ENVELOPE_KEY], strict_checksum=strict_checksum)
