"""mcp_http_bridge.proxy.session

Accès exclusif à un ProcessBridge partagé par plusieurs appelants concurrents.

Un seul cycle écriture→lecture à la fois sur le pipe: c'est l'unique garantie
d'appariement requête/réponse (le bridge ne suit aucun `id` JSON-RPC).

Ordre des appelants en attente: celui d'`asyncio.Lock` (réveil dans l'ordre
d'arrivée en pratique, mais sans garantie FIFO stricte documentée).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from .process_bridge import BridgeState, ProcessBridge

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SharedSession:
    """Enveloppe un ProcessBridge derrière un verrou d'accès exclusif."""

    def __init__(self, bridge: ProcessBridge):
        self._bridge = bridge
        self._lock = asyncio.Lock()

    @property
    def state(self) -> BridgeState:
        return self._bridge.state

    @property
    def label(self) -> str:
        return self._bridge.label

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def with_exclusive_access(self, fn: Callable[[ProcessBridge], Awaitable[T]]) -> T:
        """
        Exécute `fn(bridge)` en détenant le verrou; libéré sur tous les chemins.

        `fn` ne doit pas conserver de référence au bridge après son retour.
        """

        async with self._lock:
            return await fn(self._bridge)

    async def initialize(self) -> None:
        """Handshake MCP sous le verrou."""
        await self.with_exclusive_access(lambda bridge: bridge.initialize())

    async def forward(self, payload: str) -> str:
        """Forwarde un message JSON-RPC brut et retourne la ligne de réponse."""
        return await self.with_exclusive_access(lambda bridge: bridge.query(payload))

    async def close(self) -> None:
        """Arrête le processus une fois le cycle en cours terminé."""
        await self.with_exclusive_access(lambda bridge: bridge.close())
