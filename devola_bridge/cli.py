"""Command-line interface for devola-bridge."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import constants
from .app import DevolaBridgeApp
from .config import load_config
from .core import CommandKind, TopicRegistry, frame
from .errors import BridgeError, ConfigError, MalformedFrameError
from .translator import parse_command_value

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=constants.APP_NAME,
        description="Translate Devola heater serial frames to normalized MQTT topics",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {constants.DEFAULT_CONFIG_PATH})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("start", help="Start the bridge service")

    subparsers.add_parser(
        "show-config", help="Print the resolved configuration and exit"
    )

    topics_parser = subparsers.add_parser(
        "check-topics", help="Validate the topic mapping table"
    )
    topics_parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="Mapping file to check (default: bridge.topics_path)",
    )

    decode_parser = subparsers.add_parser(
        "decode", help="Decode a status frame or SSerialReceived payload"
    )
    decode_parser.add_argument("frame", help="F2F2... frame or JSON payload")
    decode_parser.add_argument(
        "--strict-checksum",
        action="store_true",
        help="Reject frames whose checksum does not match",
    )

    encode_parser = subparsers.add_parser(
        "encode", help="Print the serial frame sent for a command"
    )
    encode_parser.add_argument(
        "kind",
        choices=[
            kind.value
            for kind in CommandKind
            if kind not in (CommandKind.POWER, CommandKind.TEMP)
        ],
    )
    encode_parser.add_argument("value", help="ON/OFF for CHILDLOCK, integer otherwise")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    if args.command == "start":
        return DevolaBridgeApp.start(config)

    if args.command == "show-config":
        print(f"Configuration loaded from {config.path!s}\n")
        for section in config.raw.sections():
            print(f"[{section}]")
            for key, value in config.raw[section].items():
                if key == "password" and value:
                    value = "********"
                print(f"{key} = {value}")
            print()
        return 0

    if args.command == "check-topics":
        path = args.path or config.bridge.topics_path
        try:
            registry = TopicRegistry.from_file(path)
        except ConfigError as exc:
            print(f"{path}: {exc}", file=sys.stderr)
            return 1
        for mapping in registry:
            print(f"{mapping.input_id} -> {mapping.output_id}")
        return 0

    if args.command == "decode":
        text = args.frame.strip()
        try:
            if text.startswith("{"):
                status = frame.decode_status_payload(
                    text, strict_checksum=args.strict_checksum
                )
            else:
                status = frame.decode(text, strict_checksum=args.strict_checksum)
        except MalformedFrameError as exc:
            print(f"{exc.reason}: {exc}", file=sys.stderr)
            return 1
        print(f"POWER = {status.power.label}")
        print(f"CHILDLOCK = {status.childlock.label}")
        print(f"MODE = {status.mode}")
        print(f"SETPOINT = {status.setpoint}")
        print(f"TIMER = {status.timer}")
        print(f"TEMP = {status.temp}")
        return 0

    if args.command == "encode":
        kind = CommandKind(args.kind)
        try:
            value = parse_command_value(kind, args.value)
        except BridgeError as exc:
            print(f"{exc.reason}: {exc}", file=sys.stderr)
            return 1
        print(frame.encode_command(kind, value))
        return 0

    LOGGER.error("Unknown command: %s", args.command)
    return 1


if __name__ == "__main__":
    sys.exit(main())
