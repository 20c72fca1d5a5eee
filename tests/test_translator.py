"""Tests for the status and command translation paths."""

import logging

import pytest

from devola_bridge.core import CommandKind, OnOff, Power, frame
from devola_bridge.translator import Translator, parse_command_value
from devola_bridge.errors import InvalidPayloadError
from devola_bridge.adapters import MQTTConnectionError


@pytest.fixture
def translator(registry, publisher) -> Translator:
    return Translator(registry, publisher)


def _power_on(translator, status_payload, **fields):
    assert translator.handle_message("tele/devola1/RESULT", status_payload(**fields))


def test_status_example_publishes_full_snapshot(translator, publisher, status_payload):
    _power_on(translator, status_payload)

    assert publisher.messages == [
        ("stat/heater1/POWER", "ON"),
        ("stat/heater1/TEMP", "21"),
        ("stat/heater1/CHILDLOCK", "OFF"),
        ("stat/heater1/MODE", "1"),
        ("stat/heater1/SETPOINT", "20"),
        ("stat/heater1/TIMER", "4"),
    ]
    assert all(qos == 1 and not retain for _, _, qos, retain in publisher.published)


def test_status_updates_device_state(translator, registry, status_payload):
    _power_on(translator, status_payload, childlock=1, mode=2, setpoint=25)

    state = registry.lookup_by_input("devola1").state
    assert state.initialised
    assert state.power == Power.ON
    assert state.childlock == OnOff.ON
    assert state.mode == 2
    assert state.setpoint == 25
    assert state.timer == 4
    assert state.temp == 21


def test_power_on_after_off_publishes_power_once_then_all_fields(
    translator, registry, publisher, status_payload
):
    registry.lookup_by_input("devola1").state.power = Power.OFF

    _power_on(translator, status_payload)

    topics = [topic for topic, _ in publisher.messages]
    assert topics.count("stat/heater1/POWER") == 1
    assert topics[0] == "stat/heater1/POWER"
    assert set(topics[1:]) == {
        "stat/heater1/TEMP",
        "stat/heater1/CHILDLOCK",
        "stat/heater1/MODE",
        "stat/heater1/SETPOINT",
        "stat/heater1/TIMER",
    }


def test_unchanged_power_republishes_fields_without_power(
    translator, publisher, status_payload
):
    _power_on(translator, status_payload)
    publisher.published.clear()

    _power_on(translator, status_payload)

    topics = [topic for topic, _ in publisher.messages]
    assert "stat/heater1/POWER" not in topics
    assert len(topics) == 5


def test_power_off_reports_only_power(translator, publisher, status_payload):
    _power_on(translator, status_payload)
    publisher.published.clear()

    assert translator.handle_message(
        "tele/devola1/RESULT", status_payload(power=2, setpoint=99)
    )

    assert publisher.messages == [("stat/heater1/POWER", "OFF")]


def test_repeated_power_off_publishes_nothing(translator, publisher, status_payload):
    translator.handle_message("tele/devola1/RESULT", status_payload(power=2))
    publisher.published.clear()

    translator.handle_message("tele/devola1/RESULT", status_payload(power=2))

    assert publisher.published == []


def test_retain_status_option(registry, publisher, status_payload):
    translator = Translator(registry, publisher, qos=0, retain_status=True)

    translator.handle_message("tele/devola1/RESULT", status_payload())

    assert all(qos == 0 and retain for _, _, qos, retain in publisher.published)


def test_unknown_device_is_dropped_without_affecting_others(
    translator, publisher, status_payload, caplog
):
    with caplog.at_level(logging.WARNING):
        assert not translator.handle_message("tele/unknown/RESULT", status_payload())

    assert publisher.published == []
    assert "topic=tele/unknown/RESULT reason=unknown_device" in caplog.text

    _power_on(translator, status_payload)
    assert len(publisher.published) == 6


def test_malformed_status_is_dropped_and_state_untouched(
    translator, registry, publisher
):
    assert not translator.handle_message("tele/devola1/RESULT", b'{"POWER":"ON"}')
    assert not translator.handle_message("tele/devola1/RESULT", b"")

    assert publisher.published == []
    assert registry.lookup_by_input("devola1").state.initialised is False
    stats = translator.stats()
    assert stats["dropped"] == 2
    assert stats["dropped.malformed_frame"] == 1
    assert stats["dropped.empty_payload"] == 1


def test_strict_checksum_drops_corrupt_frame(registry, publisher):
    translator = Translator(registry, publisher, strict_checksum=True)
    payload = (
        b'{"SSerialReceived":"F2F20210010202001900011400051501000001007E"}'
    )

    assert not translator.handle_message("tele/devola1/RESULT", payload)
    assert translator.stats()["dropped.checksum_mismatch"] == 1


def test_setpoint_command_sends_frame(translator, publisher, status_payload):
    _power_on(translator, status_payload)
    publisher.published.clear()

    assert translator.handle_message("cmnd/heater1/SETPOINT", b"22")

    assert len(publisher.published) == 1
    topic, payload = publisher.messages[0]
    assert topic == "cmnd/devola1/SSERIALSEND5"
    assert payload == "F1F10210000002001900001600000001000001457E"
    values = frame.parse_payload(payload[4:-4])
    assert values == {
        "power": 0,
        "childlock": 0,
        "mode": 0,
        "setpoint": 22,
        "timer": 0,
        "temp": 0,
    }


@pytest.mark.parametrize(
    "command, payload, expected",
    [
        ("CHILDLOCK", b"ON", frame.encode_command(CommandKind.CHILDLOCK, 1)),
        ("CHILDLOCK", b"off", frame.encode_command(CommandKind.CHILDLOCK, 2)),
        ("MODE", b"3", frame.encode_command(CommandKind.MODE, 3)),
        ("TIMER", b"4", frame.encode_command(CommandKind.TIMER, 4)),
    ],
)
def test_field_commands_encode_frames(
    translator, publisher, status_payload, command, payload, expected
):
    _power_on(translator, status_payload)
    publisher.published.clear()

    assert translator.handle_message(f"cmnd/heater1/{command}", payload)

    assert publisher.messages == [("cmnd/devola1/SSERIALSEND5", expected)]


@pytest.mark.parametrize("stored", [Power.OFF, Power.UNKNOWN])
@pytest.mark.parametrize("command", ["CHILDLOCK", "MODE", "SETPOINT", "TIMER"])
def test_power_gate_rejects_field_commands(
    translator, registry, publisher, caplog, stored, command
):
    registry.lookup_by_output("heater1").state.power = stored

    with caplog.at_level(logging.WARNING):
        assert not translator.handle_message(f"cmnd/heater1/{command}", b"1")

    assert publisher.published == []
    rejections = [r for r in caplog.records if "reason=power_gate" in r.getMessage()]
    assert len(rejections) == 1


@pytest.mark.parametrize("stored", [Power.ON, Power.OFF, Power.UNKNOWN])
def test_power_command_forwards_verbatim(translator, registry, publisher, stored):
    registry.lookup_by_output("heater1").state.power = stored

    assert translator.handle_message("cmnd/heater1/POWER", b"TOGGLE")

    assert publisher.messages == [("cmnd/devola1/POWER", "TOGGLE")]


def test_empty_command_payload_is_ignored(translator, publisher):
    assert not translator.handle_message("cmnd/heater1/POWER", b"")
    assert not translator.handle_message("cmnd/heater1/POWER", None)

    assert publisher.published == []
    assert translator.stats()["dropped.empty_payload"] == 2


def test_temp_command_is_unsupported(translator, publisher, status_payload):
    _power_on(translator, status_payload)
    publisher.published.clear()

    assert not translator.handle_message("cmnd/heater1/TEMP", b"22")

    assert publisher.published == []
    assert translator.stats()["dropped.unsupported_command"] == 1


def test_unknown_command_name_is_unsupported(translator, publisher):
    assert not translator.handle_message("cmnd/heater1/BRIGHTNESS", b"1")

    assert translator.stats()["dropped.unsupported_command"] == 1


def test_command_for_unknown_output_is_dropped(translator, publisher):
    assert not translator.handle_message("cmnd/heater9/POWER", b"ON")

    assert publisher.published == []
    assert translator.stats()["dropped.unknown_device"] == 1


@pytest.mark.parametrize(
    "command, payload",
    [("SETPOINT", b"warm"), ("MODE", b"256"), ("TIMER", b"-1"), ("CHILDLOCK", b"1")],
)
def test_invalid_command_payload_is_dropped(
    translator, publisher, status_payload, command, payload
):
    _power_on(translator, status_payload)
    publisher.published.clear()

    assert not translator.handle_message(f"cmnd/heater1/{command}", payload)

    assert publisher.published == []
    assert translator.stats()["dropped.invalid_payload"] == 1


def test_unroutable_topic_is_dropped(translator):
    assert not translator.handle_message("stat/heater1/POWER", b"ON")
    assert not translator.handle_message("tele/devola1/STATE", b"{}")

    assert translator.stats()["dropped.unsupported_topic"] == 2


def test_publish_failure_does_not_raise(translator, publisher, status_payload):
    publisher.fail_with = MQTTConnectionError("Publish failed with rc=4")

    assert translator.handle_message("tele/devola1/RESULT", status_payload())

    assert translator.stats()["publish_failed"] == 6
    assert translator.registry.lookup_by_input("devola1").state.power == Power.ON


def test_state_is_shared_between_paths(translator, publisher, status_payload):
    # The command path sees the power state written by the status path.
    translator.handle_message("cmnd/heater1/MODE", b"2")
    assert publisher.published == []

    _power_on(translator, status_payload)
    publisher.published.clear()

    assert translator.handle_message("cmnd/heater1/MODE", b"2")
    assert len(publisher.published) == 1


def test_subscription_topics_cover_all_mappings(translator):
    topics = translator.subscription_topics()

    assert topics[:7] == [
        "tele/devola1/RESULT",
        "cmnd/heater1/POWER",
        "cmnd/heater1/CHILDLOCK",
        "cmnd/heater1/MODE",
        "cmnd/heater1/SETPOINT",
        "cmnd/heater1/TEMP",
        "cmnd/heater1/TIMER",
    ]
    assert len(topics) == 14
    assert "tele/devola2/RESULT" in topics


def test_parse_command_value_bounds():
    assert parse_command_value(CommandKind.TIMER, " 254 ") == 254
    with pytest.raises(InvalidPayloadError):
        parse_command_value(CommandKind.TIMER, "255")
    assert parse_command_value(CommandKind.CHILDLOCK, "on") == OnOff.ON


@pytest.mark.parametrize("text", ["1_0", "+5", "٣", "²", "0x10", ""])
def test_parse_command_value_accepts_only_ascii_digits(text):
    with pytest.raises(InvalidPayloadError):
        parse_command_value(CommandKind.SETPOINT, text)


@pytest.mark.parametrize("timer", [0, 4, 254])
def test_accepted_timer_command_reads_back_unchanged(timer):
    sent = frame.encode_command(
        CommandKind.TIMER, parse_command_value(CommandKind.TIMER, str(timer))
    )

    status = frame.decode(frame.STATUS_PREFIX + sent[len(frame.COMMAND_PREFIX):])

    assert status.timer == timer


def test_timer_command_beyond_status_byte_is_dropped(
    translator, publisher, status_payload
):
    _power_on(translator, status_payload)
    publisher.published.clear()

    assert not translator.handle_message("cmnd/heater1/TIMER", b"300")

    assert publisher.published == []
    assert translator.stats()["dropped.invalid_payload"] == 1
