"""Error taxonomy for the Devola bridge.

Only :class:`ConfigError` is fatal. Every other error is raised for a single
inbound message and is caught, logged and dropped by the translator.
"""

from __future__ import annotations


class BridgeError(RuntimeError):
    """Base class for all bridge errors."""

    reason = "error"


class ConfigError(BridgeError):
    """Raised when the mapping table or configuration is unusable."""

    reason = "config"


class NotFoundError(BridgeError):
    """Raised when a topic identifier is not present in the registry."""

    reason = "unknown_device"


class MalformedFrameError(BridgeError):
    """Raised when a device payload does not match the frame layout."""

    reason = "malformed_frame"


class ChecksumError(MalformedFrameError):
    """Raised when strict checksum validation rejects a status frame."""

    reason = "checksum_mismatch"


class UnsupportedCommandError(BridgeError):
    """Raised for command names the device cannot accept."""

    reason = "unsupported_command"


class PowerGateError(UnsupportedCommandError):
    """Raised when a non-power command arrives while the device is not on."""

    reason = "power_gate"


class InvalidPayloadError(BridgeError):
    """Raised when a command payload cannot be parsed into a slot value."""

    reason = "invalid_payload"


class EmptyPayloadError(BridgeError):
    """Raised for command messages carrying no payload."""

    reason = "empty_payload"


class UnsupportedTopicError(BridgeError):
    """Raised for topics outside the status and command families."""

    reason = "unsupported_topic"
