"""Routing between Tasmota serial-bridge topics and normalized heater topics."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import Dict, List, Protocol, Union

from paho.mqtt.client import topic_matches_sub

from .core import frame
from .core.models import CommandKind, DeviceMapping, OnOff, Power, StatusFrame
from .core.registry import TopicRegistry
from .errors import (
    BridgeError,
    EmptyPayloadError,
    InvalidPayloadError,
    PowerGateError,
    UnsupportedCommandError,
    UnsupportedTopicError,
)

LOGGER = logging.getLogger(__name__)

STATUS_PATTERN = "tele/+/RESULT"
COMMAND_PATTERN = "cmnd/+/+"

STATUS_TOPIC = "tele/{}/RESULT"
SERIAL_SEND_TOPIC = "cmnd/{}/SSERIALSEND5"
DEVICE_POWER_TOPIC = "cmnd/{}/POWER"
COMMAND_TOPIC = "cmnd/{}/{}"
REPORT_TOPIC = "stat/{}/{}"

# Inclusive ranges for numeric command payloads.
COMMAND_RANGES: Dict[CommandKind, tuple[int, int]] = {
    CommandKind.MODE: (0, 0xFF),
    CommandKind.SETPOINT: (0, 0xFF),
    CommandKind.TIMER: (0, frame.MAX_TIMER),
}

Payload = Union[str, bytes, None]


class Publisher(Protocol):
    def publish(
        self, topic: str, payload: bytes, qos: int = 1, retain: bool = False
    ) -> None: ...


class Translator:
    """Translates status frames into field reports and commands into frames.

    The translator holds no state of its own beyond counters; per-heater state
    lives in the registry's mappings and is guarded by each mapping's lock.
    """

    def __init__(
        self,
        registry: TopicRegistry,
        publisher: Publisher,
        *,
        qos: int = 1,
        retain_status: bool = False,
        strict_checksum: bool = False,
    ) -> None:
        self._registry = registry
        self._publisher = publisher
        self._qos = qos
        self._retain_status = retain_status
        self._strict_checksum = strict_checksum
        self._stats: Counter[str] = Counter()
        self._stats_lock = threading.Lock()

    @property
    def registry(self) -> TopicRegistry:
        return self._registry

    def subscription_topics(self) -> List[str]:
        """Topics to subscribe on every broker (re)connect."""

        topics: List[str] = []
        for mapping in self._registry:
            topics.append(STATUS_TOPIC.format(mapping.input_id))
            for kind in CommandKind:
                topics.append(COMMAND_TOPIC.format(mapping.output_id, kind.value))
        return topics

    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)

    def handle_message(self, topic: str, payload: Payload) -> bool:
        """Route one inbound message.

        Returns True when the message was translated. Per-message failures are
        logged and counted; they never propagate.
        """

        try:
            if topic_matches_sub(STATUS_PATTERN, topic):
                self._handle_status(topic.split("/")[1], payload)
            elif topic_matches_sub(COMMAND_PATTERN, topic):
                _, output_id, command = topic.split("/")
                self._handle_command(output_id, command, payload)
            else:
                raise UnsupportedTopicError(f"no route for topic {topic!r}")
        except BridgeError as exc:
            LOGGER.warning(
                "Dropped message topic=%s reason=%s: %s", topic, exc.reason, exc
            )
            self._count("dropped")
            self._count(f"dropped.{exc.reason}")
            return False

        self._count("translated")
        return True

    # ------------------------------------------------------------------
    # Status path: device frame -> normalized field reports
    # ------------------------------------------------------------------
    def _handle_status(self, input_id: str, payload: Payload) -> None:
        mapping = self._registry.lookup_by_input(input_id)
        if not payload:
            raise EmptyPayloadError("status message has no payload")

        status = frame.decode_status_payload(
            payload, strict_checksum=self._strict_checksum
        )
        LOGGER.debug("Decoded status from %s: %s", input_id, status)

        with mapping.lock:
            power_changed = mapping.state.power != status.power
            mapping.state.apply(status)

        if power_changed:
            self._report(mapping, "POWER", status.power.label)
        if status.power == Power.ON:
            self._report_fields(mapping, status)

    def _report_fields(self, mapping: DeviceMapping, status: StatusFrame) -> None:
        # Every field is republished while on so consumers always hold a full
        # snapshot after power-on.
        self._report(mapping, "TEMP", str(status.temp))
        self._report(mapping, "CHILDLOCK", status.childlock.label)
        self._report(mapping, "MODE", str(status.mode))
        self._report(mapping, "SETPOINT", str(status.setpoint))
        self._report(mapping, "TIMER", str(status.timer))

    def _report(self, mapping: DeviceMapping, field_name: str, value: str) -> None:
        self._publish(
            REPORT_TOPIC.format(mapping.output_id, field_name),
            value,
            retain=self._retain_status,
        )

    # ------------------------------------------------------------------
    # Command path: normalized command -> device frame or power switch
    # ------------------------------------------------------------------
    def _handle_command(self, output_id: str, command: str, payload: Payload) -> None:
        mapping = self._registry.lookup_by_output(output_id)

        text = _payload_text(payload)
        if not text:
            raise EmptyPayloadError(f"no payload for {command} command")

        kind = CommandKind.parse(command)

        if kind == CommandKind.POWER:
            self._publish(DEVICE_POWER_TOPIC.format(mapping.input_id), text)
            return

        with mapping.lock:
            power = mapping.state.power
        if power != Power.ON:
            raise PowerGateError(
                f"Can't set {kind.value} while power state is {power.label}"
            )

        if kind == CommandKind.TEMP:
            raise UnsupportedCommandError("TEMP is read-only")

        value = parse_command_value(kind, text)
        self._publish(
            SERIAL_SEND_TOPIC.format(mapping.input_id),
            frame.encode_command(kind, value),
        )

    def _publish(self, topic: str, value: str, *, retain: bool = False) -> None:
        try:
            self._publisher.publish(
                topic, value.encode("utf-8"), qos=self._qos, retain=retain
            )
        except RuntimeError as exc:
            # MQTTConnectionError and "not connected" both land here; QoS and
            # the broker own redelivery.
            LOGGER.warning("Publish to %s failed: %s", topic, exc)
            self._count("publish_failed")
            return
        LOGGER.debug("Published %s -> %s", topic, value)

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._stats[key] += 1


def _payload_text(payload: Payload) -> str:
    if payload is None:
        return ""
    if isinstance(payload, bytes):
        try:
            return payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidPayloadError("payload is not valid UTF-8") from exc
    return payload


def parse_command_value(kind: CommandKind, text: str) -> int:
    value_text = text.strip()

    if kind == CommandKind.CHILDLOCK:
        try:
            return OnOff[value_text.upper()].value
        except KeyError:
            raise InvalidPayloadError(
                f"CHILDLOCK expects ON or OFF, got {value_text!r}"
            ) from None

    if not (value_text.isascii() and value_text.isdigit()):
        raise InvalidPayloadError(
            f"{kind.value} expects a decimal integer, got {value_text!r}"
        )
    value = int(value_text)

    low, high = COMMAND_RANGES[kind]
    if not low <= value <= high:
        raise InvalidPayloadError(
            f"{kind.value}={value} outside {low}..{high}"
        )
    return value
