import json
from typing import Callable

import pytest

from devola_bridge.core import TopicRegistry, frame


class FakePublisher:
    """Records publishes instead of sending them to a broker."""

    def __init__(self) -> None:
        self.published: list[tuple[str, bytes, int, bool]] = []
        self.fail_with: Exception | None = None

    def publish(
        self, topic: str, payload: bytes, qos: int = 1, retain: bool = False
    ) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.published.append((topic, payload, qos, retain))

    @property
    def messages(self) -> list[tuple[str, str]]:
        return [(topic, payload.decode()) for topic, payload, _, _ in self.published]


def build_status_frame(
    power: int = 1,
    childlock: int = 2,
    mode: int = 1,
    setpoint: int = 20,
    timer: int = 5,
    temp: int = 21,
    *,
    checksum: str | None = None,
) -> str:
    payload = frame.render_payload(
        {
            "power": power,
            "childlock": childlock,
            "mode": mode,
            "setpoint": setpoint,
            "timer": timer,
            "temp": temp,
        }
    )
    return f"F2F2{payload}{checksum or frame.checksum(payload)}7E"


@pytest.fixture
def status_payload() -> Callable[..., bytes]:
    def factory(**fields) -> bytes:
        return json.dumps({"SSerialReceived": build_status_frame(**fields)}).encode()

    return factory


@pytest.fixture
def publisher() -> FakePublisher:
    return FakePublisher()


@pytest.fixture
def registry() -> TopicRegistry:
    return TopicRegistry.from_pairs([("devola1", "heater1"), ("devola2", "heater2")])
