"""Startup probe that waits for the network interface to come up."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

LOGGER = logging.getLogger(__name__)

SYS_CLASS_NET = Path("/sys/class/net")


class NetworkUnavailableError(RuntimeError):
    """Raised when the interface does not come up before the timeout."""


def _read_flag(path: Path) -> Optional[str]:
    try:
        return path.read_text(encoding="ascii").strip()
    except OSError:
        # carrier cannot be read while the interface is administratively down
        return None


def interface_running(interface: str, *, sys_root: Path = SYS_CLASS_NET) -> bool:
    """Return True when the interface has link.

    ``carrier`` mirrors the kernel's IFF_RUNNING flag; ``operstate`` is used
    as a fallback for drivers that do not expose it.
    """

    base = sys_root / interface
    if not base.exists():
        return False

    carrier = _read_flag(base / "carrier")
    if carrier is not None:
        return carrier == "1"
    return _read_flag(base / "operstate") == "up"


async def wait_for_network(
    interface: str,
    *,
    poll_interval: float = 15.0,
    timeout: Optional[float] = None,
    sys_root: Path = SYS_CLASS_NET,
) -> None:
    """Block until ``interface`` is running.

    An empty interface name skips the probe. ``timeout`` of None or 0 waits
    forever.
    """

    if not interface:
        return

    if interface_running(interface, sys_root=sys_root):
        LOGGER.debug("Network interface %s already up", interface)
        return

    LOGGER.info("Waiting for network on %s", interface)

    async def _poll() -> None:
        while not interface_running(interface, sys_root=sys_root):
            await asyncio.sleep(poll_interval)

    try:
        await asyncio.wait_for(_poll(), timeout=timeout or None)
    except asyncio.TimeoutError as exc:
        raise NetworkUnavailableError(
            f"Interface {interface} not up after {timeout}s"
        ) from exc

    LOGGER.info("Network connection now up on %s", interface)
