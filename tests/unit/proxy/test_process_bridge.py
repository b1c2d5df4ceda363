"""Tests unitaires — proxy/process_bridge.py.

Objectifs:
    - Aller-retour requête/réponse sur un vrai processus enfant
    - EOF, ligne vide, timeout et dépassement de limite => ProcessError distincts
    - Handshake: refus explicite (`error`) fatal, réponse non JSON tolérée
    - stderr drainé en continu (un enfant bavard ne bloque pas le pipe)

Contraintes:
    - Aucun node/npx: le faux serveur tests/fixtures/fake_mcp_server_stdio.py
      est lancé avec sys.executable
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time

import pytest

from mcp_http_bridge.core.exceptions import ProcessError
from mcp_http_bridge.proxy.process_bridge import (
    BridgeState,
    ProcessBridge,
    build_initialize_request,
    build_initialized_notification,
)


async def _spawn(fake_server_path, mode: str, *extra: str, **kwargs) -> ProcessBridge:
    kwargs.setdefault("query_timeout_s", 10.0)
    kwargs.setdefault("handshake_timeout_s", 10.0)
    return await ProcessBridge.spawn(
        sys.executable,
        [str(fake_server_path), mode, *extra],
        label=f"fake-{mode}",
        **kwargs,
    )


async def _ready(fake_server_path, mode: str, *extra: str, **kwargs) -> ProcessBridge:
    bridge = await _spawn(fake_server_path, mode, *extra, **kwargs)
    try:
        await bridge.initialize()
    except BaseException:
        await bridge.close()
        raise
    return bridge


@pytest.mark.unit
def test_initialize_request_has_fixed_shape():
    request = build_initialize_request()

    assert request["jsonrpc"] == "2.0"
    assert request["id"] == 0
    assert request["method"] == "initialize"
    assert request["params"]["protocolVersion"] == "2024-11-05"
    assert request["params"]["capabilities"] == {}
    assert request["params"]["clientInfo"]["name"] == "mcp-http-bridge"


@pytest.mark.unit
def test_initialized_notification_has_no_id():
    notification = build_initialized_notification()

    assert notification["method"] == "notifications/initialized"
    assert "id" not in notification


@pytest.mark.unit
@pytest.mark.asyncio
async def test_query_round_trip_returns_child_line(fake_server_path):
    bridge = await _ready(fake_server_path, "echo")
    try:
        assert bridge.state is BridgeState.READY

        payload = json.dumps({"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"x": "é"}})
        reply = await bridge.query(payload)

        assert reply == payload
        assert bridge.state is BridgeState.READY
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_query_returns_server_response_for_tools_list(fake_server_path):
    bridge = await _ready(fake_server_path, "tools")
    try:
        reply = await bridge.query('{"jsonrpc":"2.0","id":1,"method":"tools/list","params":{}}')
        data = json.loads(reply)

        assert data["id"] == 1
        assert data["result"]["tools"][0]["name"] == "echo_small"
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sequential_queries_pair_in_order(fake_server_path):
    bridge = await _ready(fake_server_path, "echo")
    try:
        for i in range(5):
            payload = json.dumps({"jsonrpc": "2.0", "id": i, "method": "ping"})
            assert await bridge.query(payload) == payload
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_eof_is_reported_as_connection_closed(fake_server_path):
    bridge = await _ready(fake_server_path, "eof")
    try:
        with pytest.raises(ProcessError) as exc_info:
            await bridge.query('{"jsonrpc":"2.0","id":1,"method":"ping"}')

        assert exc_info.value.reason == "connection_closed"
        assert bridge.state is BridgeState.CLOSED

        # Aucune nouvelle requête n'est acceptée après EOF
        with pytest.raises(ProcessError) as exc_info:
            await bridge.query('{"jsonrpc":"2.0","id":2,"method":"ping"}')
        assert exc_info.value.reason == "closed"
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_line_is_distinct_from_eof(fake_server_path):
    bridge = await _ready(fake_server_path, "blank")
    try:
        with pytest.raises(ProcessError) as exc_info:
            await bridge.query('{"jsonrpc":"2.0","id":1,"method":"ping"}')

        assert exc_info.value.reason == "empty_response"
        # Le processus est toujours vivant: le bridge reste utilisable
        assert bridge.state is BridgeState.READY
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_silent_child_times_out_within_bound(fake_server_path):
    bridge = await _ready(fake_server_path, "silent", query_timeout_s=0.3)
    try:
        started = time.monotonic()
        with pytest.raises(ProcessError) as exc_info:
            await bridge.query('{"jsonrpc":"2.0","id":1,"method":"ping"}')
        elapsed = time.monotonic() - started

        assert exc_info.value.reason == "timeout"
        assert exc_info.value.details["timeout_s"] == 0.3
        assert elapsed >= 0.3 - 0.01
        assert elapsed < 3.0
        assert bridge.state is BridgeState.READY
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_late_reply_is_read_by_next_query(fake_server_path):
    """Un timeout n'annule pas la requête écrite: sa réponse reste dans le pipe."""
    bridge = await _ready(fake_server_path, "late", "0.6", query_timeout_s=0.2)
    try:
        first = '{"jsonrpc":"2.0","id":1,"method":"ping"}'
        second = '{"jsonrpc":"2.0","id":2,"method":"ping"}'

        with pytest.raises(ProcessError) as exc_info:
            await bridge.query(first)
        assert exc_info.value.reason == "timeout"

        await asyncio.sleep(1.0)

        # Comportement connu: la réponse tardive est attribuée à la requête suivante
        assert await bridge.query(second) == first
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reply_over_stream_limit_is_rejected(fake_server_path):
    bridge = await _ready(fake_server_path, "echo", stream_limit=1024)
    try:
        payload = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping", "params": {"blob": "x" * 8192}})

        with pytest.raises(ProcessError) as exc_info:
            await bridge.query(payload)

        assert exc_info.value.reason == "stream_limit"
        assert bridge.state is BridgeState.CLOSED
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_oversized_reply_never_leaks_into_next_query(fake_server_path):
    # Réponse bien plus grande qu'un chunk de pipe: readline vide son buffer
    # sans atteindre la fin de la ligne.
    bridge = await _ready(fake_server_path, "echo", stream_limit=64 * 1024)
    try:
        payload = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping", "params": {"blob": "x" * 300_000}})

        with pytest.raises(ProcessError) as exc_info:
            await bridge.query(payload)
        assert exc_info.value.reason == "stream_limit"

        for _ in range(3):
            with pytest.raises(ProcessError) as exc_info:
                await bridge.query('{"id":2}')
            assert exc_info.value.reason == "closed"
        assert bridge.state is BridgeState.CLOSED
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_stderr_flood_does_not_block_replies(fake_server_path):
    bridge = await _ready(fake_server_path, "stderr-flood")
    try:
        payload = '{"jsonrpc":"2.0","id":1,"method":"ping"}'
        for _ in range(2):
            assert await bridge.query(payload) == payload
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handshake_error_reply_is_fatal(fake_server_path):
    bridge = await _spawn(fake_server_path, "reject")
    try:
        with pytest.raises(ProcessError) as exc_info:
            await bridge.initialize()

        assert exc_info.value.reason == "handshake_rejected"
        assert exc_info.value.details["error"]["message"] == "unsupported"
        assert bridge.state is not BridgeState.READY
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handshake_tolerates_non_json_reply(fake_server_path):
    bridge = await _ready(fake_server_path, "garbage-init")
    try:
        assert bridge.state is BridgeState.READY
        assert await bridge.query('{"id":1}') == '{"id":1}'
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_handshake_timeout(fake_server_path):
    # Processus qui ne lit jamais stdin
    bridge = await ProcessBridge.spawn(
        sys.executable,
        ["-c", "import time; time.sleep(30)"],
        handshake_timeout_s=0.3,
        label="mute",
    )
    try:
        with pytest.raises(ProcessError) as exc_info:
            await bridge.initialize()
        assert exc_info.value.reason == "timeout"
        assert bridge.state is BridgeState.SPAWNED
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_query_before_initialize_is_refused(fake_server_path):
    bridge = await _spawn(fake_server_path, "echo")
    try:
        with pytest.raises(ProcessError) as exc_info:
            await bridge.query('{"id":1}')
        assert exc_info.value.reason == "not_ready"
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_spawn_failure_is_reported(tmp_path):
    missing = tmp_path / "definitely-not-an-mcp-server"

    with pytest.raises(ProcessError) as exc_info:
        await ProcessBridge.spawn(str(missing), ["--stdio"])

    assert exc_info.value.reason == "spawn_failed"
    assert exc_info.value.details["executable"] == str(missing)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_spawn_uses_working_dir_and_env(fake_server_path, tmp_path):
    env = dict(os.environ, FAKE_MCP_ENV="depuis-config")

    bridge = await _ready(fake_server_path, "cwd", working_dir=tmp_path, env=env)
    try:
        reply = await bridge.query('{"id":1}')
        assert os.path.realpath(reply) == os.path.realpath(str(tmp_path))
    finally:
        await bridge.close()

    bridge = await _ready(fake_server_path, "env", env=env)
    try:
        assert await bridge.query('{"id":1}') == "depuis-config"
    finally:
        await bridge.close()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_is_idempotent_and_final(fake_server_path):
    bridge = await _ready(fake_server_path, "echo")

    await bridge.close()
    await bridge.close()

    assert bridge.state is BridgeState.CLOSED
    assert bridge.returncode is not None
    with pytest.raises(ProcessError) as exc_info:
        await bridge.query('{"id":1}')
    assert exc_info.value.reason == "closed"
