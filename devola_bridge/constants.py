"""Constants used across the devola-bridge package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "devola-bridge"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_DIR = Path.home() / ".config" / APP_NAME
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILENAME
DEFAULT_TOPICS_FILENAME = "topics.conf"

DEFAULT_BROKER_HOST = "192.168.1.1"
DEFAULT_BROKER_PORT = 1883
DEFAULT_KEEPALIVE = 60

DEFAULT_NETWORK_INTERFACE = "eth0"
DEFAULT_NETWORK_POLL_SECONDS = 15.0
