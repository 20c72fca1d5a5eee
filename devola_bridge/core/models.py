"""Domain models for Devola heaters and their topic mappings."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from ..errors import UnsupportedCommandError


class OnOff(IntEnum):
    """Two-state flag as encoded on the wire."""

    ON = 1
    OFF = 2

    @classmethod
    def from_wire(cls, value: int) -> "OnOff":
        # The heater never reports 0; anything that is not ON reads as OFF.
        return cls.ON if value == cls.ON else cls.OFF

    @property
    def label(self) -> str:
        return self.name


class Power(IntEnum):
    UNKNOWN = 0
    ON = 1
    OFF = 2

    @classmethod
    def from_wire(cls, value: int) -> "Power":
        return cls.ON if value == cls.ON else cls.OFF

    @property
    def label(self) -> str:
        return self.name


class CommandKind(str, Enum):
    """Commands accepted on the normalized ``cmnd/<output>/<name>`` topics."""

    POWER = "POWER"
    CHILDLOCK = "CHILDLOCK"
    MODE = "MODE"
    SETPOINT = "SETPOINT"
    TEMP = "TEMP"
    TIMER = "TIMER"

    @classmethod
    def parse(cls, name: str) -> "CommandKind":
        try:
            return cls(name)
        except ValueError as exc:
            raise UnsupportedCommandError(f"unknown command {name!r}") from exc


@dataclass(frozen=True, slots=True)
class StatusFrame:
    """Field values decoded from one status frame.

    ``timer`` is already corrected for the wire offset of one.
    """

    power: Power
    childlock: OnOff
    mode: int
    setpoint: int
    timer: int
    temp: int


@dataclass(slots=True)
class DeviceState:
    """Last-known field values of one heater.

    Values are undefined until ``initialised`` is set by the first decoded
    status frame. Field values beyond power are only meaningful once a frame
    reporting ON has been applied (``fields_known``).
    """

    power: Power = Power.UNKNOWN
    childlock: OnOff = OnOff.OFF
    mode: int = 0
    setpoint: int = 0
    timer: int = 0
    temp: int = 0
    initialised: bool = False
    fields_known: bool = False

    def apply(self, frame: StatusFrame) -> None:
        self.power = frame.power
        if frame.power == Power.ON:
            self.temp = frame.temp
            self.childlock = frame.childlock
            self.mode = frame.mode
            self.setpoint = frame.setpoint
            self.timer = frame.timer
            self.fields_known = True
        self.initialised = True

    def as_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "power": self.power.label,
            "initialised": self.initialised,
        }
        if self.fields_known:
            data.update(
                childlock=self.childlock.label,
                mode=self.mode,
                setpoint=self.setpoint,
                timer=self.timer,
                temp=self.temp,
            )
        return data


@dataclass(eq=False, slots=True)
class DeviceMapping:
    """Association between a device-side topic id and its normalized id."""

    input_id: str
    output_id: str
    state: DeviceState = field(default_factory=DeviceState)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
