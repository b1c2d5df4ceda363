"""mcp_http_bridge.config.loader

Chargement du fichier de configuration JSON des serveurs MCP.

Format:
    {
        "version": "1.0",
        "servers": {
            "<nom>": {"command": "...", "args": [...], "env": {...},
                      "repository": "...", "build_command": "...",
                      "runtime_config": {"node": {...}}}
        }
    }

Note d'architecture:
- Le package `config/` est consommé par les couches Features et API.
- Il ne doit donc pas dépendre de `features/*` ni de `proxy/*`.
"""
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Union

from ..core.exceptions import ConfigurationError
from .settings import ServerSpec, ServersConfig

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Une variable absente est laissée telle quelle.

    Args:
        obj: Valeur à traiter (str, dict, list)

    Returns:
        Valeur avec variables d'environnement expansées
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))
        return _ENV_VAR_PATTERN.sub(replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def parse_servers_config(raw: Dict[str, Any]) -> ServersConfig:
    """
    Construit un ServersConfig depuis un dictionnaire déjà décodé.

    Raises:
        ConfigurationError: Si la structure est invalide
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("La configuration doit être un objet JSON", config_key="root")

    servers_raw = raw.get("servers")
    if not isinstance(servers_raw, dict):
        raise ConfigurationError("'servers' doit être un objet JSON", config_key="servers")

    servers: Dict[str, ServerSpec] = {}
    for name, server_raw in servers_raw.items():
        if not isinstance(server_raw, dict):
            raise ConfigurationError(
                f"La configuration du serveur '{name}' doit être un objet",
                config_key=f"servers.{name}",
            )
        servers[name] = ServerSpec.from_dict(_expand_env_vars(server_raw))

    return ServersConfig(version=str(raw.get("version", "1.0")), servers=servers)


def load_servers_config(config_path: Union[str, Path]) -> ServersConfig:
    """
    Charge la configuration des serveurs MCP depuis un fichier JSON.

    Args:
        config_path: Chemin vers le fichier de configuration

    Returns:
        Configuration des serveurs

    Raises:
        ConfigurationError: Si le fichier n'existe pas ou est invalide
    """
    path = Path(config_path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(
            message=f"Impossible de lire le fichier de configuration '{config_path}': {e}",
            config_key="config_path",
        ) from e

    try:
        raw = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            message=f"Fichier de configuration '{config_path}' invalide: {e}",
            config_key="config_path",
        ) from e

    return parse_servers_config(raw)


def load_server_spec(config_path: Union[str, Path], server_name: str) -> ServerSpec:
    """Charge le fichier puis retourne la spec du serveur `server_name`."""
    if not server_name or not server_name.strip():
        raise ConfigurationError("Nom de serveur MCP manquant", config_key="server_name")
    return load_servers_config(config_path).get_server(server_name)
