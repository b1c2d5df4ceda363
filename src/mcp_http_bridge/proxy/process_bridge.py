"""mcp_http_bridge.proxy.process_bridge

Bridge stdio vers un serveur MCP enfant.

Couche Proxy:
- Contient l'I/O processus (asyncio.subprocess)
- N'interprète pas les payloads JSON-RPC: une ligne écrite, une ligne lue
  (seul le handshake `initialize` construit et lit du JSON)

Important:
- Aucun verrou interne: l'accès exclusif est fourni par `SharedSession`.
- stderr est drainé en tâche de fond dès le spawn, avant la première écriture
  sur stdin (un enfant bavard bloquerait sinon sur un buffer plein).
- Un timeout annule l'attente de l'appelant, pas la requête déjà écrite:
  la réponse tardive reste dans le pipe et sera lue par la requête suivante.
- Une réponse plus longue que `stream_limit` ferme le bridge (`stream_limit`):
  le reste de la ligne resterait dans le pipe et serait lu par la requête
  suivante. Les appels ultérieurs échouent avec `closed`.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from pathlib import Path
from typing import Mapping, Sequence

from .. import __version__
from ..core.constants import (
    DEFAULT_HANDSHAKE_TIMEOUT_S,
    DEFAULT_QUERY_TIMEOUT_S,
    DEFAULT_STREAM_LIMIT_BYTES,
    INITIALIZE_REQUEST_ID,
    MCP_CLIENT_NAME,
    MCP_PROTOCOL_VERSION,
    PROCESS_TERMINATE_GRACE_S,
)
from ..core.exceptions import ProcessError

logger = logging.getLogger(__name__)


class BridgeState(str, enum.Enum):
    """Cycle de vie: SPAWNED → INITIALIZING → READY → (QUERYING → READY)* → CLOSED."""

    SPAWNED = "spawned"
    INITIALIZING = "initializing"
    READY = "ready"
    QUERYING = "querying"
    CLOSED = "closed"


def build_initialize_request() -> dict[str, object]:
    """Requête `initialize` du handshake MCP (forme fixe)."""

    return {
        "jsonrpc": "2.0",
        "id": INITIALIZE_REQUEST_ID,
        "method": "initialize",
        "params": {
            "protocolVersion": MCP_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": MCP_CLIENT_NAME, "version": __version__},
        },
    }


def build_initialized_notification() -> dict[str, object]:
    """Notification `initialized` (aucune réponse attendue)."""

    return {"jsonrpc": "2.0", "method": "notifications/initialized", "params": {}}


async def _drain_stderr(stream: asyncio.StreamReader, label: str) -> None:
    """Relaye stderr de l'enfant vers le logger jusqu'à EOF.

    Ne participe jamais au flux requête/réponse. Une ligne plus longue que la
    limite du StreamReader est ignorée (asyncio la retire du buffer) et le
    drainage continue.
    """

    while True:
        try:
            line = await stream.readline()
        except ValueError:
            logger.debug("stderr [%s]: ligne trop longue ignorée", label)
            continue
        except OSError as e:
            logger.debug("stderr [%s]: erreur de lecture, arrêt du drainage: %s", label, e)
            return

        if not line:
            logger.debug("stderr [%s]: EOF, fin du drainage", label)
            return

        logger.debug("stderr [%s] %s", label, line.decode("utf-8", errors="replace").rstrip())


def _inspect_handshake_reply(line: str, label: str) -> None:
    """Analyse la réponse à `initialize`.

    - JSON invalide / pas un objet / ligne vide => warning, le handshake continue
    - objet avec `error` => ProcessError (handshake_rejected)
    """

    if not line:
        logger.warning("Handshake [%s]: réponse initialize vide, on continue", label)
        return

    try:
        reply = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning("Handshake [%s]: réponse initialize non JSON (%s), on continue", label, e)
        return

    if not isinstance(reply, dict):
        logger.warning("Handshake [%s]: réponse initialize inattendue (%s), on continue", label, type(reply).__name__)
        return

    if reply.get("error") is not None:
        raise ProcessError(
            f"Le serveur MCP a refusé l'initialisation: {reply['error']}",
            reason="handshake_rejected",
            details={"error": reply["error"]},
        )

    result = reply.get("result")
    if not isinstance(result, dict):
        logger.warning("Handshake [%s]: réponse initialize sans `result`, on continue", label)
        return

    server_info = result.get("serverInfo")
    logger.info(
        "Handshake [%s] OK: protocolVersion=%s serverInfo=%s",
        label,
        result.get("protocolVersion"),
        server_info if isinstance(server_info, dict) else None,
    )


async def _terminate(process: asyncio.subprocess.Process, *, grace_s: float) -> None:
    """Arrêt progressif: attente → terminate → kill."""

    if process.returncode is not None:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_s)
        return
    except asyncio.TimeoutError:
        pass

    try:
        process.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=grace_s)
        return
    except asyncio.TimeoutError:
        pass

    try:
        process.kill()
    except ProcessLookupError:
        return
    await process.wait()


class ProcessBridge:
    """
    Primitive requête/réponse sur les pipes stdio d'un processus MCP.

    Possède exclusivement stdin (écriture) et stdout (lecture) pour toute la vie
    du processus. Ne doit pas être partagé directement: passer par SharedSession.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        label: str,
        query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
        handshake_timeout_s: float = DEFAULT_HANDSHAKE_TIMEOUT_S,
    ):
        if process.stdin is None or process.stdout is None:
            raise ProcessError("Pipes stdio indisponibles", reason="pipe_unavailable")

        self._process = process
        self._stdin = process.stdin
        self._stdout = process.stdout
        self._label = label
        self.query_timeout_s = query_timeout_s
        self.handshake_timeout_s = handshake_timeout_s
        self._state = BridgeState.SPAWNED
        self._stderr_task: asyncio.Task[None] | None = None
        self._closed = False

    @classmethod
    async def spawn(
        cls,
        executable: str,
        args: Sequence[str] = (),
        env: Mapping[str, str] | None = None,
        working_dir: str | Path | None = None,
        *,
        query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
        handshake_timeout_s: float = DEFAULT_HANDSHAKE_TIMEOUT_S,
        stream_limit: int = DEFAULT_STREAM_LIMIT_BYTES,
        label: str | None = None,
    ) -> ProcessBridge:
        """
        Lance le processus MCP avec stdin/stdout/stderr redirigés vers des pipes.

        Args:
            executable: Commande à lancer
            args: Arguments ordonnés
            env: Environnement complet du processus (None = hérité)
            working_dir: Répertoire de travail
            query_timeout_s: Attente max d'une réponse à `query`
            handshake_timeout_s: Attente max de la réponse à `initialize`
            stream_limit: Taille max d'une ligne lue (bytes)
            label: Nom utilisé dans les logs (défaut: nom de l'exécutable)

        Returns:
            ProcessBridge dans l'état SPAWNED, drainage stderr démarré

        Raises:
            ProcessError: spawn_failed / pipe_unavailable (fatal, pas de retry)
        """

        label = label or Path(executable).name
        logger.info("Démarrage du processus MCP [%s]: %s %s", label, executable, list(args))

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=dict(env) if env is not None else None,
                cwd=str(working_dir) if working_dir is not None else None,
                limit=stream_limit,
            )
        except (OSError, ValueError) as e:
            raise ProcessError(
                f"Impossible de démarrer le processus MCP '{executable}': {e}",
                reason="spawn_failed",
                details={"executable": executable},
            ) from e

        missing = [
            name
            for name, pipe in (("stdin", process.stdin), ("stdout", process.stdout), ("stderr", process.stderr))
            if pipe is None
        ]
        if missing:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise ProcessError(
                f"Pipes indisponibles pour le processus MCP: {', '.join(missing)}",
                reason="pipe_unavailable",
                details={"missing": missing},
            )

        bridge = cls(
            process,
            label=label,
            query_timeout_s=query_timeout_s,
            handshake_timeout_s=handshake_timeout_s,
        )
        bridge._stderr_task = asyncio.create_task(_drain_stderr(process.stderr, label))
        logger.debug("Processus MCP [%s] démarré (pid=%s)", label, process.pid)
        return bridge

    @property
    def state(self) -> BridgeState:
        if self._state is not BridgeState.CLOSED and self._process.returncode is not None:
            self._state = BridgeState.CLOSED
        return self._state

    @property
    def label(self) -> str:
        return self._label

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def initialize(self) -> None:
        """
        Handshake MCP: `initialize` → une ligne de réponse → `notifications/initialized`.

        Raises:
            ProcessError: EOF, timeout, refus explicite (`error`) ou bridge pas
                dans l'état SPAWNED
        """

        if self.state is BridgeState.CLOSED:
            raise ProcessError("Le processus MCP est terminé", reason="closed", details=self._exit_details())
        if self._state is not BridgeState.SPAWNED:
            raise ProcessError(
                f"Handshake impossible dans l'état {self._state.value}",
                reason="not_ready",
            )

        self._state = BridgeState.INITIALIZING
        try:
            await self._write_line(json.dumps(build_initialize_request(), ensure_ascii=False))
            line = await self._read_line(self.handshake_timeout_s)
            _inspect_handshake_reply(line, self._label)
            await self._write_line(json.dumps(build_initialized_notification(), ensure_ascii=False))
        except BaseException:
            if self._state is BridgeState.INITIALIZING:
                self._state = BridgeState.SPAWNED
            raise

        self._state = BridgeState.READY
        logger.info("Processus MCP [%s] prêt", self._label)

    async def query(self, payload: str) -> str:
        """
        Écrit `payload` + '\\n' sur stdin puis lit exactement une ligne de stdout.

        Args:
            payload: Message JSON-RPC complet (opaque, non validé)

        Returns:
            La ligne de réponse brute, sans les blancs de fin

        Raises:
            ProcessError: connection_closed (EOF), timeout, empty_response,
                stream_limit, write_failed, read_failed, closed, not_ready
        """

        if self.state is BridgeState.CLOSED:
            raise ProcessError("Le processus MCP est terminé", reason="closed", details=self._exit_details())
        if self._state is not BridgeState.READY:
            raise ProcessError(
                f"Bridge non prêt (état: {self._state.value})",
                reason="not_ready",
            )

        self._state = BridgeState.QUERYING
        try:
            logger.debug("→ [%s] %s", self._label, payload)
            await self._write_line(payload)
            line = await self._read_line(self.query_timeout_s)
        finally:
            if self._state is BridgeState.QUERYING:
                self._state = BridgeState.READY

        if not line:
            raise ProcessError("Le serveur MCP a renvoyé une ligne vide", reason="empty_response")

        logger.debug("← [%s] %s", self._label, line)
        return line

    async def close(self) -> None:
        """Ferme stdin, attend la fin du processus (terminate/kill si besoin). Idempotent."""

        if self._closed:
            return
        self._closed = True
        self._state = BridgeState.CLOSED

        try:
            self._stdin.close()
            await self._stdin.wait_closed()
        except (ConnectionError, OSError):
            # Le processus a déjà fermé son côté du pipe.
            pass

        await _terminate(self._process, grace_s=PROCESS_TERMINATE_GRACE_S)

        task = self._stderr_task
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except asyncio.TimeoutError:
                pass

        logger.info("Processus MCP [%s] arrêté (code=%s)", self._label, self._process.returncode)

    async def _write_line(self, payload: str) -> None:
        try:
            self._stdin.write((payload + "\n").encode("utf-8"))
            await self._stdin.drain()
        except (ConnectionError, OSError) as e:
            self._state = BridgeState.CLOSED
            raise ProcessError(
                f"Écriture impossible sur stdin du serveur MCP: {e}",
                reason="write_failed",
                details=self._exit_details(),
            ) from e

    async def _read_line(self, timeout_s: float) -> str:
        """Lit une ligne de stdout dans la limite `timeout_s` (peut être vide)."""

        try:
            raw = await asyncio.wait_for(self._stdout.readline(), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Timeout [%s]: aucune réponse après %.1f s", self._label, timeout_s)
            raise ProcessError(
                f"Timeout de réponse du serveur MCP ({timeout_s:g} s)",
                reason="timeout",
                details={"timeout_s": timeout_s},
            ) from None
        except ValueError as e:
            # "Separator is not found, and chunk exceed the limit": le reste de
            # la ligne est encore dans le pipe, l'appariement est perdu.
            self._state = BridgeState.CLOSED
            logger.error("Réponse trop volumineuse [%s]: bridge fermé", self._label)
            raise ProcessError(
                f"Réponse du serveur MCP trop volumineuse: {e}",
                reason="stream_limit",
            ) from e
        except OSError as e:
            raise ProcessError(
                f"Lecture impossible sur stdout du serveur MCP: {e}",
                reason="read_failed",
            ) from e

        if not raw:
            self._state = BridgeState.CLOSED
            logger.warning("EOF [%s]: le serveur MCP a fermé stdout", self._label)
            raise ProcessError(
                "Le serveur MCP a fermé la connexion (EOF)",
                reason="connection_closed",
                details=self._exit_details(),
            )

        return raw.decode("utf-8", errors="replace").rstrip()

    def _exit_details(self) -> dict[str, object]:
        if self._process.returncode is None:
            return {}
        return {"returncode": self._process.returncode}

    def __repr__(self) -> str:
        return f"ProcessBridge(label={self._label!r}, pid={self.pid}, state={self._state.value})"
