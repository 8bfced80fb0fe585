"""
Service readiness polling.

Fixed-interval loop: probe, sleep, repeat, until a probe succeeds or the
deadline passes. The probe timeout and the sleep are both clipped to the
remaining time, so polling never runs past the stated ceiling.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx

from automate_installer.exceptions import ReadinessTimeout

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0  # seconds between probes
DEFAULT_PROBE_TIMEOUT = 1.0  # seconds per probe

Probe = Callable[[str, float], Awaitable[bool]]


async def http_probe(url: str, timeout: float) -> bool:
    """True if the endpoint answers with any HTTP response."""
    try:
        # Readiness endpoints are local; an environment proxy would answer for a dead port
        async with httpx.AsyncClient(timeout=timeout, trust_env=False) as client:
            await client.get(url)
        return True
    except httpx.HTTPError:
        return False


async def tcp_probe(endpoint: str, timeout: float) -> bool:
    """True if a TCP connection to tcp://host:port can be opened."""
    parts = urlsplit(endpoint)
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(parts.hostname, parts.port), timeout=timeout
        )
    except (OSError, asyncio.TimeoutError):
        return False

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def endpoint_probe(endpoint: str, timeout: float) -> bool:
    """Dispatch on the endpoint scheme: http(s):// or tcp://."""
    scheme = urlsplit(endpoint).scheme
    if scheme in ("http", "https"):
        return await http_probe(endpoint, timeout)
    if scheme == "tcp":
        return await tcp_probe(endpoint, timeout)
    raise ValueError(f"Unsupported endpoint scheme: {endpoint}")


class ReadinessPoller:
    """Waits for a network endpoint to become reachable."""

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        probe: Optional[Probe] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self.probe_timeout = probe_timeout
        self.probe = probe or endpoint_probe
        self.clock = clock

    async def _attempt(self, endpoint: str, timeout: float) -> bool:
        try:
            return bool(await asyncio.wait_for(self.probe(endpoint, timeout), timeout=timeout))
        except asyncio.TimeoutError:
            return False

    async def wait_for_ready(self, endpoint: str, timeout_seconds: float) -> None:
        """Return once *endpoint* responds; raise ReadinessTimeout at the deadline."""
        if urlsplit(endpoint).scheme not in ("http", "https", "tcp") and self.probe is endpoint_probe:
            raise ValueError(f"Unsupported endpoint scheme: {endpoint}")

        logger.info("Waiting for %s (up to %gs)...", endpoint, timeout_seconds)
        start = self.clock()
        attempts = 0

        while True:
            remaining = timeout_seconds - (self.clock() - start)
            if remaining <= 0:
                break

            attempts += 1
            if await self._attempt(endpoint, min(self.probe_timeout, remaining)):
                logger.info("%s is ready after %.1fs", endpoint, self.clock() - start)
                return

            remaining = timeout_seconds - (self.clock() - start)
            if remaining <= 0:
                break
            await asyncio.sleep(min(self.interval, remaining))

        logger.error("%s not ready after %d attempts", endpoint, attempts)
        raise ReadinessTimeout(endpoint, timeout_seconds)
