"""Tests unitaires — proxy/session.py (accès exclusif au bridge)."""

from __future__ import annotations

import asyncio
import sys

import pytest

from mcp_http_bridge.core.exceptions import ProcessError
from mcp_http_bridge.proxy.process_bridge import BridgeState, ProcessBridge
from mcp_http_bridge.proxy.session import SharedSession


class _RecordingBridge:
    """Bridge en mémoire: trace écritures/lectures, pause entre les deux."""

    def __init__(self, delay_s: float = 0.01, fail_on: str | None = None):
        self.events: list[tuple[str, str]] = []
        self.delay_s = delay_s
        self.fail_on = fail_on
        self.state = BridgeState.READY
        self.label = "recording"
        self.closed = False

    async def initialize(self) -> None:
        self.events.append(("init", ""))

    async def query(self, payload: str) -> str:
        self.events.append(("write", payload))
        await asyncio.sleep(self.delay_s)
        if payload == self.fail_on:
            raise ProcessError("boom", reason="timeout")
        self.events.append(("read", payload))
        return f"reply:{payload}"

    async def close(self) -> None:
        self.closed = True
        self.state = BridgeState.CLOSED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_forwards_never_interleave():
    bridge = _RecordingBridge()
    session = SharedSession(bridge)  # type: ignore[arg-type]

    payloads = [f"req-{i}" for i in range(10)]
    replies = await asyncio.gather(*(session.forward(p) for p in payloads))

    assert replies == [f"reply:{p}" for p in payloads]

    # Chaque écriture est immédiatement suivie de sa propre lecture
    writes_reads = [e for e in bridge.events if e[0] in ("write", "read")]
    assert len(writes_reads) == 20
    for i in range(0, len(writes_reads), 2):
        (w_kind, w_payload), (r_kind, r_payload) = writes_reads[i], writes_reads[i + 1]
        assert (w_kind, r_kind) == ("write", "read")
        assert w_payload == r_payload


@pytest.mark.unit
@pytest.mark.asyncio
async def test_lock_released_after_failure():
    bridge = _RecordingBridge(fail_on="bad")
    session = SharedSession(bridge)  # type: ignore[arg-type]

    with pytest.raises(ProcessError):
        await session.forward("bad")

    assert not session.busy
    assert await asyncio.wait_for(session.forward("good"), timeout=1.0) == "reply:good"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_busy_reflects_lock_holder():
    bridge = _RecordingBridge(delay_s=0.1)
    session = SharedSession(bridge)  # type: ignore[arg-type]

    task = asyncio.create_task(session.forward("slow"))
    await asyncio.sleep(0.02)
    assert session.busy

    await task
    assert not session.busy


@pytest.mark.unit
@pytest.mark.asyncio
async def test_with_exclusive_access_returns_callable_result():
    bridge = _RecordingBridge()
    session = SharedSession(bridge)  # type: ignore[arg-type]

    async def _two_queries(b):
        return [await b.query("a"), await b.query("b")]

    assert await session.with_exclusive_access(_two_queries) == ["reply:a", "reply:b"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_waits_for_in_flight_query():
    bridge = _RecordingBridge(delay_s=0.1)
    session = SharedSession(bridge)  # type: ignore[arg-type]

    task = asyncio.create_task(session.forward("in-flight"))
    await asyncio.sleep(0.02)
    await session.close()

    assert await task == "reply:in-flight"
    assert bridge.closed
    assert session.state is BridgeState.CLOSED


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_forwards_over_real_process(fake_server_path):
    bridge = await ProcessBridge.spawn(
        sys.executable,
        [str(fake_server_path), "echo"],
        query_timeout_s=10.0,
        handshake_timeout_s=10.0,
        label="fake-echo",
    )
    session = SharedSession(bridge)
    try:
        await session.initialize()

        payloads = [f'{{"jsonrpc":"2.0","id":{i},"method":"ping"}}' for i in range(20)]
        replies = await asyncio.gather(*(session.forward(p) for p in payloads))

        assert replies == payloads
    finally:
        await session.close()
