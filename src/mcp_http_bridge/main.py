"""
MCP HTTP Bridge - Application FastAPI Factory.
Un serveur MCP stdio par instance, exposé sur POST /api/v1.
"""
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI

from . import __version__
from .api.router import api_router
from .config.loader import load_server_spec
from .config.settings import BridgeSettings, ServerSpec
from .features.session_factory import start_session
from .proxy.session import SharedSession

SessionFactory = Callable[[str, ServerSpec, str, BridgeSettings], Awaitable[SharedSession]]


def create_app(
    settings: Optional[BridgeSettings] = None,
    session_factory: Optional[SessionFactory] = None,
) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    Args:
        settings: Réglages du bridge (défaut: variables d'environnement)
        session_factory: Démarrage de la session MCP (défaut: start_session)

    Returns:
        Instance configurée de FastAPI
    """
    settings = settings or BridgeSettings.from_env()
    session_factory = session_factory or start_session

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        # Startup
        await _startup(app, settings, session_factory)
        yield
        # Shutdown
        await _shutdown(app)

    app = FastAPI(
        title="MCP HTTP Bridge",
        description="Expose un serveur MCP stdio via une API HTTP",
        version=__version__,
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.auth_config = settings.auth
    app.state.session = None

    # Inclusion des routes API
    app.include_router(api_router)

    return app


async def _startup(app: FastAPI, settings: BridgeSettings, session_factory: SessionFactory):
    """Initialisation au démarrage: toute erreur interrompt le démarrage."""
    print("🚀 Démarrage du MCP HTTP Bridge...")
    print(
        f"📄 Config: '{settings.config_file}', Serveur: '{settings.server_name}', "
        f"Runtime: '{settings.runtime_type}'"
    )

    spec = load_server_spec(settings.config_file, settings.server_name)
    app.state.session = await session_factory(
        settings.server_name, spec, settings.runtime_type, settings
    )

    auth_status = "activée" if settings.auth.enabled else "désactivée"
    print(f"✅ Serveur MCP '{settings.server_name}' prêt (authentification {auth_status})")


async def _shutdown(app: FastAPI):
    """Arrêt de l'application."""
    print("\n👋 Arrêt du bridge...")

    session = getattr(app.state, "session", None)
    if session is not None:
        await session.close()
        app.state.session = None

    print("✅ Bridge arrêté proprement")


# Crée l'application pour uvicorn
app = create_app()
