"""Configuration loader for devola-bridge."""

from __future__ import annotations

from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import constants


@dataclass(slots=True)
class BrokerConfig:
    host: str = constants.DEFAULT_BROKER_HOST
    port: int = constants.DEFAULT_BROKER_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: Optional[str] = None
    keepalive: int = constants.DEFAULT_KEEPALIVE


@dataclass(slots=True)
class BridgeConfig:
    topics_path: Path = Path(constants.DEFAULT_TOPICS_FILENAME)
    qos: int = 1
    retain_status: bool = False
    strict_checksum: bool = False  # Reject status frames whose checksum does not match


@dataclass(slots=True)
class NetworkConfig:
    interface: str = constants.DEFAULT_NETWORK_INTERFACE
    poll_interval_seconds: float = constants.DEFAULT_NETWORK_POLL_SECONDS
    timeout_seconds: float = 0.0  # 0 waits forever


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = None
    log_network: bool = False


@dataclass(slots=True)
class ResilienceConfig:
    reconnect_min_seconds: int = 1
    reconnect_max_seconds: int = 30
    connect_timeout_seconds: float = 30.0
    health_enabled: bool = False
    health_host: str = "127.0.0.1"
    health_port: int = 0


@dataclass(slots=True)
class DevolaConfig:
    broker: BrokerConfig
    bridge: BridgeConfig
    network: NetworkConfig
    logging: LoggingConfig
    resilience: ResilienceConfig
    raw: ConfigParser
    path: Path


def load_config(path: Optional[Path] = None) -> DevolaConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "broker": {
                "host": constants.DEFAULT_BROKER_HOST,
                "port": str(constants.DEFAULT_BROKER_PORT),
                "keepalive": str(constants.DEFAULT_KEEPALIVE),
            },
            "bridge": {
                "topics_path": constants.DEFAULT_TOPICS_FILENAME,
                "qos": "1",
                "retain_status": "false",
                "strict_checksum": "false",
            },
            "network": {
                "interface": constants.DEFAULT_NETWORK_INTERFACE,
                "poll_interval_seconds": str(constants.DEFAULT_NETWORK_POLL_SECONDS),
                "timeout_seconds": "0",
            },
            "logging": {
                "level": "INFO",
                "log_network": "false",
            },
            "resilience": {
                "reconnect_min_seconds": "1",
                "reconnect_max_seconds": "30",
                "connect_timeout_seconds": "30",
                "health_enabled": "false",
                "health_host": "127.0.0.1",
                "health_port": "0",
            },
        }
    )

    if config_path.exists():
        parser.read(config_path)

    host_value = parser.get("broker", "host")
    port_value = parser.getint(
        "broker", "port", fallback=constants.DEFAULT_BROKER_PORT
    )

    if ":" in host_value:
        host_part, port_part = host_value.rsplit(":", 1)
        try:
            parsed_port = int(port_part)
        except ValueError:
            pass
        else:
            host_value = host_part
            port_value = parsed_port
            parser.set("broker", "host", host_part)
            parser.set("broker", "port", str(parsed_port))

    broker = BrokerConfig(
        host=host_value,
        port=port_value,
        username=parser.get("broker", "username", fallback=None),
        password=parser.get("broker", "password", fallback=None),
        client_id=parser.get("broker", "client_id", fallback=None) or None,
        keepalive=max(
            5,
            parser.getint(
                "broker", "keepalive", fallback=constants.DEFAULT_KEEPALIVE
            ),
        ),
    )

    # Relative mapping tables live next to the configuration file.
    topics_path = Path(parser.get("bridge", "topics_path")).expanduser()
    if not topics_path.is_absolute():
        topics_path = config_path.parent / topics_path

    bridge = BridgeConfig(
        topics_path=topics_path,
        qos=max(0, min(2, parser.getint("bridge", "qos", fallback=1))),
        retain_status=parser.getboolean("bridge", "retain_status", fallback=False),
        strict_checksum=parser.getboolean(
            "bridge", "strict_checksum", fallback=False
        ),
    )

    network = NetworkConfig(
        interface=parser.get("network", "interface", fallback="").strip(),
        poll_interval_seconds=max(
            0.1,
            parser.getfloat(
                "network",
                "poll_interval_seconds",
                fallback=constants.DEFAULT_NETWORK_POLL_SECONDS,
            ),
        ),
        timeout_seconds=max(
            0.0, parser.getfloat("network", "timeout_seconds", fallback=0.0)
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="")
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_network=parser.getboolean("logging", "log_network", fallback=False),
    )

    reconnect_min = max(
        1, parser.getint("resilience", "reconnect_min_seconds", fallback=1)
    )
    resilience = ResilienceConfig(
        reconnect_min_seconds=reconnect_min,
        reconnect_max_seconds=max(
            reconnect_min,
            parser.getint("resilience", "reconnect_max_seconds", fallback=30),
        ),
        connect_timeout_seconds=max(
            1.0,
            parser.getfloat("resilience", "connect_timeout_seconds", fallback=30.0),
        ),
        health_enabled=parser.getboolean(
            "resilience", "health_enabled", fallback=False
        ),
        health_host=parser.get("resilience", "health_host", fallback="127.0.0.1"),
        health_port=parser.getint("resilience", "health_port", fallback=0),
    )

    return DevolaConfig(
        broker=broker,
        bridge=bridge,
        network=network,
        logging=logging_config,
        resilience=resilience,
        raw=parser,
        path=config_path,
    )
