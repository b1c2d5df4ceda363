"""
Point d'entrée pour `python -m mcp_http_bridge`.
"""
import argparse
import logging
import sys

import uvicorn
from dotenv import load_dotenv

from .config.settings import BridgeSettings
from .main import create_app


def configure_logging(level: str) -> None:
    """Logs sur stderr, niveau issu de LOG_LEVEL / --log-level."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main():
    """Fonction principale."""
    # .env optionnel; n'écrase jamais l'environnement existant
    load_dotenv(override=False)
    settings = BridgeSettings.from_env()

    parser = argparse.ArgumentParser(description="MCP HTTP Bridge")
    parser.add_argument("--host", default="0.0.0.0", help="Host (défaut: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port (défaut: {settings.port})")
    parser.add_argument("--config", default=settings.config_file, help="Fichier de configuration des serveurs MCP")
    parser.add_argument("--server", default=settings.server_name, help="Nom du serveur MCP à lancer")
    parser.add_argument("--runtime", default=settings.runtime_type, help="Runtime: node, python, go")
    parser.add_argument("--log-level", default=settings.log_level, help="Niveau de log (défaut: INFO)")

    args = parser.parse_args()

    settings.port = args.port
    settings.config_file = args.config
    settings.server_name = args.server
    settings.runtime_type = args.runtime
    settings.log_level = args.log_level.upper()

    configure_logging(settings.log_level)

    print(f"🚀 Démarrage du MCP HTTP Bridge sur {args.host}:{args.port}")

    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
