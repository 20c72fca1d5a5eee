"""Core primitives for devola-bridge."""

from . import frame
from .models import (
    CommandKind,
    DeviceMapping,
    DeviceState,
    OnOff,
    Power,
    StatusFrame,
)
from .registry import TopicRegistry, parse_mapping_lines

__all__ = [
    "CommandKind",
    "DeviceMapping",
    "DeviceState",
    "OnOff",
    "Power",
    "StatusFrame",
    "TopicRegistry",
    "frame",
    "parse_mapping_lines",
]
