"""mcp_http_bridge.features.session_factory

Démarrage complet d'un serveur MCP logique:

    select_runtime → check_toolchain_available → provision (clone/build)
    → strategy.start (spawn) → SharedSession → handshake initialize

Toute erreur interrompt le démarrage (pas de mode dégradé, pas de retry).
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config.settings import BridgeSettings, ServerSpec
from ..proxy.session import SharedSession
from .provisioning.provisioner import Provisioner
from .runtime.selector import select_runtime

logger = logging.getLogger(__name__)


async def start_session(
    server_name: str,
    spec: ServerSpec,
    runtime_name: str,
    settings: Optional[BridgeSettings] = None,
) -> SharedSession:
    """
    Prépare puis démarre le serveur MCP `server_name` et retourne sa session.

    Args:
        server_name: Nom logique (détermine le working tree)
        spec: Spécification résolue du serveur
        runtime_name: Nom du runtime (node, python, go et alias)
        settings: Réglages du bridge (défaut: valeurs par défaut)

    Returns:
        SharedSession prête (handshake effectué)

    Raises:
        ConfigurationError: runtime inconnu, nom de serveur invalide
        RuntimeSetupError: toolchain absente, clone/build en échec
        ProcessError: spawn ou handshake en échec
    """

    settings = settings or BridgeSettings()

    strategy = select_runtime(runtime_name)
    await strategy.check_toolchain_available(spec.runtime_config)

    provisioner = Provisioner(
        settings.work_dir,
        git_executable=settings.git_executable,
        timeout_s=settings.provision_timeout_s,
    )
    working_dir = await provisioner.provision(server_name, spec)
    logger.info("Working tree [%s]: %s", server_name, working_dir)

    bridge = await strategy.start(
        spec,
        working_dir,
        query_timeout_s=settings.query_timeout_s,
        handshake_timeout_s=settings.handshake_timeout_s,
        stream_limit=settings.stream_limit,
        label=server_name,
    )

    session = SharedSession(bridge)
    try:
        await session.initialize()
    except BaseException:
        await bridge.close()
        raise

    return session
