"""Tests for ReadinessPoller and the endpoint probes."""

import asyncio
import time

import pytest

from automate_installer.exceptions import ReadinessTimeout
from automate_installer.readiness import (
    ReadinessPoller,
    endpoint_probe,
    http_probe,
    tcp_probe,
)


def _probe_ready_after(delay: float):
    """Probe that starts succeeding *delay* seconds after creation."""
    ready_at = time.monotonic() + delay
    calls = []

    async def probe(endpoint, timeout):
        calls.append(endpoint)
        return time.monotonic() >= ready_at

    probe.calls = calls
    return probe


async def _never_ready(endpoint, timeout):
    return False


async def _hangs(endpoint, timeout):
    await asyncio.sleep(60)
    return True


# ============================================================================
# TestWaitForReady
# ============================================================================

class TestWaitForReady:

    async def test_returns_immediately_when_up(self):
        probe = _probe_ready_after(0)
        poller = ReadinessPoller(interval=0.05, probe_timeout=0.05, probe=probe)
        await poller.wait_for_ready("http://localhost:1", 1.0)
        assert len(probe.calls) == 1

    async def test_returns_once_service_comes_up(self):
        probe = _probe_ready_after(0.2)
        poller = ReadinessPoller(interval=0.05, probe_timeout=0.05, probe=probe)

        start = time.monotonic()
        await poller.wait_for_ready("http://localhost:1", 2.0)
        elapsed = time.monotonic() - start

        assert elapsed >= 0.2
        assert elapsed < 1.0
        assert len(probe.calls) > 1

    async def test_times_out_within_bound(self):
        poller = ReadinessPoller(interval=0.1, probe_timeout=0.1, probe=_never_ready)

        start = time.monotonic()
        with pytest.raises(ReadinessTimeout) as exc_info:
            await poller.wait_for_ready("tcp://localhost:1", 0.3)
        elapsed = time.monotonic() - start

        assert elapsed >= 0.3
        assert elapsed < 0.3 + 0.1 + 0.1
        assert exc_info.value.endpoint == "tcp://localhost:1"
        assert "0.3s" in str(exc_info.value)

    async def test_timeout_is_a_timeout_error(self):
        poller = ReadinessPoller(interval=0.01, probe_timeout=0.01, probe=_never_ready)
        with pytest.raises(TimeoutError):
            await poller.wait_for_ready("http://localhost:1", 0.05)

    async def test_hanging_probe_is_bounded(self):
        poller = ReadinessPoller(interval=0.05, probe_timeout=1.0, probe=_hangs)

        start = time.monotonic()
        with pytest.raises(ReadinessTimeout):
            await poller.wait_for_ready("http://localhost:1", 0.2)
        assert time.monotonic() - start < 0.5

    async def test_zero_timeout_fails_without_probing(self):
        probe = _probe_ready_after(0)
        poller = ReadinessPoller(probe=probe)
        with pytest.raises(ReadinessTimeout):
            await poller.wait_for_ready("http://localhost:1", 0)
        assert probe.calls == []

    async def test_unsupported_scheme_rejected(self):
        with pytest.raises(ValueError, match="Unsupported endpoint scheme"):
            await ReadinessPoller().wait_for_ready("ftp://localhost:21", 1.0)


# ============================================================================
# TestProbes
# ============================================================================

class TestProbes:

    @pytest.fixture
    async def tcp_server(self):
        async def handle(reader, writer):
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        yield port
        server.close()
        await server.wait_closed()

    @pytest.fixture
    async def http_server(self):
        async def handle(reader, writer):
            await reader.readuntil(b"\r\n\r\n")
            # Any status counts as reachable
            writer.write(b"HTTP/1.1 503 Service Unavailable\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        yield port
        server.close()
        await server.wait_closed()

    @staticmethod
    async def _closed_port() -> int:
        server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        server.close()
        await server.wait_closed()
        return port

    async def test_tcp_probe_open_port(self, tcp_server):
        assert await tcp_probe(f"tcp://127.0.0.1:{tcp_server}", 1.0) is True

    async def test_tcp_probe_closed_port(self):
        port = await self._closed_port()
        assert await tcp_probe(f"tcp://127.0.0.1:{port}", 1.0) is False

    async def test_http_probe_accepts_error_status(self, http_server):
        assert await http_probe(f"http://127.0.0.1:{http_server}/", 1.0) is True

    async def test_http_probe_connection_refused(self):
        port = await self._closed_port()
        assert await http_probe(f"http://127.0.0.1:{port}/", 1.0) is False

    async def test_http_probe_ignores_environment_proxy(self, http_server, monkeypatch):
        proxy = f"http://127.0.0.1:{http_server}"
        for name in ("HTTP_PROXY", "http_proxy", "ALL_PROXY", "all_proxy"):
            monkeypatch.setenv(name, proxy)
        for name in ("NO_PROXY", "no_proxy"):
            monkeypatch.delenv(name, raising=False)

        # The proxy would answer 503 for the dead port
        port = await self._closed_port()
        assert await http_probe(f"http://localhost:{port}/", 1.0) is False

    async def test_endpoint_probe_dispatches_tcp(self, tcp_server):
        assert await endpoint_probe(f"tcp://127.0.0.1:{tcp_server}", 1.0) is True

    async def test_endpoint_probe_rejects_unknown_scheme(self):
        with pytest.raises(ValueError):
            await endpoint_probe("redis://127.0.0.1:6379", 1.0)

    async def test_poller_against_live_server(self, http_server):
        poller = ReadinessPoller(interval=0.05, probe_timeout=0.5)
        await poller.wait_for_ready(f"http://127.0.0.1:{http_server}/", 2.0)
