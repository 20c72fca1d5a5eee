"""``/healthz`` endpoint reporting broker connectivity and heater state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Optional

from aiohttp import web

if TYPE_CHECKING:
    from .translator import Translator

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class LinkStatus:
    connected: bool = False
    detail: str = "initialising"
    since: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> Dict[str, object]:
        return {
            "connected": self.connected,
            "detail": self.detail,
            "since": self.since.isoformat(timespec="seconds"),
        }


class BridgeHealth:
    """Health view of the running bridge.

    Owned by the event loop: every setter is called from loop callbacks, so no
    locking is needed here. Device state is read under each mapping's lock
    because the translator mutates it from the MQTT network thread.
    """

    def __init__(self) -> None:
        self._mqtt = LinkStatus()
        self._state = "cold_start"
        self._state_detail: Optional[str] = None
        self._state_healthy = False
        self._translator: Optional["Translator"] = None

    def attach(self, translator: "Translator") -> None:
        self._translator = translator

    def set_state(
        self, state: str, *, healthy: bool, detail: Optional[str] = None
    ) -> None:
        self._state = state
        self._state_detail = detail
        self._state_healthy = healthy

    def set_mqtt(self, connected: bool, detail: str) -> None:
        if connected == self._mqtt.connected and detail == self._mqtt.detail:
            return
        self._mqtt = LinkStatus(connected=connected, detail=detail)

    @property
    def mqtt(self) -> LinkStatus:
        return self._mqtt

    @property
    def healthy(self) -> bool:
        return self._mqtt.connected and self._state_healthy

    def snapshot(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "status": "ok" if self.healthy else "degraded",
            "state": self._state,
            "detail": self._state_detail,
            "mqtt": self._mqtt.as_dict(),
        }
        if self._translator is not None:
            devices: Dict[str, object] = {}
            for mapping in self._translator.registry:
                with mapping.lock:
                    devices[mapping.output_id] = mapping.state.as_dict()
            payload["devices"] = devices
            payload["stats"] = self._translator.stats()
        return payload


HEALTH_KEY = web.AppKey("health", BridgeHealth)


async def _handle_healthz(request: web.Request) -> web.Response:
    health = request.app[HEALTH_KEY]
    return web.json_response(
        health.snapshot(), status=200 if health.healthy else 503
    )


def build_health_app(health: BridgeHealth) -> web.Application:
    app = web.Application()
    app[HEALTH_KEY] = health
    app.router.add_get("/healthz", _handle_healthz)
    return app


async def start_health_server(
    health: BridgeHealth, host: str, port: int
) -> web.AppRunner:
    """Serve ``/healthz`` on ``host:port``; the caller cleans up the runner."""

    runner = web.AppRunner(build_health_app(health))
    await runner.setup()
    try:
        await web.TCPSite(runner, host, port).start()
    except OSError:
        await runner.cleanup()
        raise
    LOGGER.info("Health endpoint listening on http://%s:%s/healthz", host, port)
    return runner
