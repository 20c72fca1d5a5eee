"""Main application entry-point for devola-bridge."""

from __future__ import annotations

import asyncio
import logging
import os
from enum import Enum
from typing import Optional

from aiohttp import web

from . import constants
from .adapters import MQTTClient, MQTTConnectionError
from .config import DevolaConfig, load_config
from .core import TopicRegistry
from .errors import ConfigError
from .health import BridgeHealth, start_health_server
from .logging import configure_logging
from .network import NetworkUnavailableError, wait_for_network
from .translator import Translator

LOGGER = logging.getLogger(__name__)


class BridgeState(str, Enum):
    COLD_START = "cold_start"
    AWAITING_NETWORK = "awaiting_network"
    AWAITING_MQTT = "awaiting_mqtt"
    ACTIVE = "active"
    DEGRADED = "degraded"
    STOPPING = "stopping"


class DevolaBridgeApp:
    """Coordinates bridge startup, broker connectivity and shutdown.

    Startup order follows the service's needs: the mapping table is loaded
    first (a broken table is fatal), then the network probe runs, then the
    broker connection is made. Subscriptions are re-applied from the connect
    handler on every broker (re)connect.
    """

    def __init__(
        self,
        config: Optional[DevolaConfig] = None,
        *,
        registry: Optional[TopicRegistry] = None,
        mqtt_client: Optional[MQTTClient] = None,
    ) -> None:
        self._config = config or load_config()
        self._registry = registry
        self._mqtt_client = mqtt_client
        self._translator: Optional[Translator] = None
        self._health = BridgeHealth()
        self._health_runner: Optional[web.AppRunner] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._state = BridgeState.COLD_START
        self._state_detail: Optional[str] = None
        self._subscribed_topics: list[str] = []

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def translator(self) -> Optional[Translator]:
        return self._translator

    @property
    def health(self) -> BridgeHealth:
        return self._health

    async def run(self) -> None:
        """Run the bridge until cancelled or :meth:`stop` is called."""

        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()

        LOGGER.info("devola-bridge starting with config: %s", self._config.path)
        try:
            await self._start_services()
            LOGGER.info("devola-bridge active; awaiting shutdown signal")
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            LOGGER.info("devola-bridge received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def stop(self) -> None:
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
        self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[DevolaConfig] = None) -> int:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_network=instance._config.logging.log_network,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("devola-bridge received shutdown signal")
        except ConfigError as exc:
            LOGGER.error("Invalid topic mapping configuration: %s", exc)
            return 1
        except (MQTTConnectionError, NetworkUnavailableError) as exc:
            LOGGER.error("Unable to start bridge: %s", exc)
            return 1
        return 0

    def _transition_state(
        self, state: BridgeState, *, detail: Optional[str] = None
    ) -> None:
        if state == self._state and detail == self._state_detail:
            return

        previous = self._state
        self._state = state
        self._state_detail = detail
        LOGGER.info(
            "Bridge state transition %s -> %s (%s)",
            previous.value,
            state.value,
            detail or state.value,
        )
        self._health.set_state(
            state.value, healthy=state == BridgeState.ACTIVE, detail=detail
        )

    async def _start_services(self) -> None:
        self._transition_state(BridgeState.COLD_START, detail="initialising")

        if self._registry is None:
            self._registry = TopicRegistry.from_file(self._config.bridge.topics_path)
        LOGGER.info("Loaded %d topic mapping(s)", len(self._registry))

        network = self._config.network
        if network.interface:
            self._transition_state(
                BridgeState.AWAITING_NETWORK, detail=f"waiting for {network.interface}"
            )
            await wait_for_network(
                network.interface,
                poll_interval=network.poll_interval_seconds,
                timeout=network.timeout_seconds,
            )

        resilience = self._config.resilience
        if self._mqtt_client is None:
            self._mqtt_client = MQTTClient(
                self._config.broker,
                client_id=_build_client_id(self._config.broker.client_id),
                reconnect_min_seconds=resilience.reconnect_min_seconds,
                reconnect_max_seconds=resilience.reconnect_max_seconds,
            )

        bridge = self._config.bridge
        self._translator = Translator(
            self._registry,
            self._mqtt_client,
            qos=bridge.qos,
            retain_status=bridge.retain_status,
            strict_checksum=bridge.strict_checksum,
        )
        self._health.attach(self._translator)

        self._mqtt_client.set_message_handler(self._translator.handle_message)
        self._mqtt_client.register_connect_handler(self._on_mqtt_connect)
        self._mqtt_client.register_disconnect_handler(self._on_mqtt_disconnect)

        self._transition_state(
            BridgeState.AWAITING_MQTT, detail="connecting to mqtt broker"
        )
        try:
            await self._mqtt_client.connect(
                timeout=resilience.connect_timeout_seconds
            )
        except MQTTConnectionError as exc:
            self._health.set_mqtt(False, str(exc))
            self._transition_state(BridgeState.DEGRADED, detail="mqtt unavailable")
            raise

        await self._start_health_server()
        self._transition_state(BridgeState.ACTIVE, detail="bridge ready")

    async def _start_health_server(self) -> None:
        resilience = self._config.resilience
        if not resilience.health_enabled or resilience.health_port <= 0:
            return

        try:
            self._health_runner = await start_health_server(
                self._health, resilience.health_host, resilience.health_port
            )
        except OSError as exc:
            LOGGER.warning("Failed to start health endpoint: %s", exc)

    async def _stop_services(self) -> None:
        self._transition_state(BridgeState.STOPPING, detail="shutdown requested")

        if self._health_runner is not None:
            await self._health_runner.cleanup()
            self._health_runner = None

        if self._mqtt_client is not None:
            await self._mqtt_client.disconnect()
            self._health.set_mqtt(False, "shutdown")

    def _subscribe_all(self) -> None:
        if self._translator is None or self._mqtt_client is None:
            return

        topics = self._translator.subscription_topics()
        qos = self._config.bridge.qos
        for topic in topics:
            self._mqtt_client.subscribe(topic, qos=qos)
        self._subscribed_topics = topics
        LOGGER.info(
            "Subscribed %d topic(s) for %d device(s)",
            len(topics),
            len(self._translator.registry),
        )

    # ------------------------------------------------------------------
    # MQTT client callbacks (delivered on the event loop)
    # ------------------------------------------------------------------
    def _on_mqtt_connect(self, rc: int) -> None:
        try:
            self._subscribe_all()
        except MQTTConnectionError as exc:
            LOGGER.error("Failed to subscribe bridge topics: %s", exc)
            self._health.set_mqtt(False, str(exc))
            self._transition_state(BridgeState.DEGRADED, detail="subscribe failed")
            return

        self._health.set_mqtt(
            True, f"subscribed to {len(self._subscribed_topics)} topic(s)"
        )
        if self._state == BridgeState.DEGRADED:
            self._transition_state(BridgeState.ACTIVE, detail="mqtt reconnected")

    def _on_mqtt_disconnect(self, rc: int) -> None:
        if self._state == BridgeState.STOPPING:
            return
        LOGGER.warning("MQTT connection lost (rc=%s); paho will reconnect", rc)
        self._health.set_mqtt(False, f"disconnected (rc={rc})")
        self._transition_state(BridgeState.DEGRADED, detail="mqtt disconnected")


def _build_client_id(client_id: Optional[str]) -> str:
    return client_id or f"{constants.APP_NAME}-{os.getpid()}"
