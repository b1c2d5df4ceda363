"""
Dataclasses pour la configuration.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple

from ..core.constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_SERVER_NAME,
    DEFAULT_RUNTIME_TYPE,
    DEFAULT_PORT,
    DEFAULT_WORK_DIR,
    DEFAULT_GIT_EXECUTABLE,
    DEFAULT_QUERY_TIMEOUT_S,
    DEFAULT_HANDSHAKE_TIMEOUT_S,
    DEFAULT_STREAM_LIMIT_BYTES,
    MIN_STREAM_LIMIT_BYTES,
    MAX_STREAM_LIMIT_BYTES,
)
from ..core.exceptions import ConfigurationError


def _env_flag(name: str, *, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, *, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(name: str, *, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        return default
    return value if value > 0 else default


def _optional_str_list(value: Any, key: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{key}' doit être une liste de chaînes", config_key=key)
    return list(value)


def clamp_stream_limit(configured: int) -> int:
    """Borne la limite de ligne stdio (64 KiB .. 64 MiB)."""
    if configured <= 0:
        return DEFAULT_STREAM_LIMIT_BYTES
    return min(MAX_STREAM_LIMIT_BYTES, max(MIN_STREAM_LIMIT_BYTES, configured))


@dataclass(frozen=True)
class NodeConfig:
    """Configuration spécifique Node.js."""
    version: Optional[str] = None
    package_manager: Optional[str] = None
    install_flags: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeConfig":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            version=data.get("version"),
            package_manager=data.get("package_manager"),
            install_flags=_optional_str_list(data.get("install_flags"), "install_flags"),
        )


@dataclass(frozen=True)
class PythonConfig:
    """Configuration spécifique Python."""
    version: Optional[str] = None
    venv_path: Optional[str] = None
    requirements_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PythonConfig":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            version=data.get("version"),
            venv_path=data.get("venv_path"),
            requirements_file=data.get("requirements_file"),
        )


@dataclass(frozen=True)
class GoConfig:
    """Configuration spécifique Go."""
    version: Optional[str] = None
    module_path: Optional[str] = None
    build_flags: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GoConfig":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            version=data.get("version"),
            module_path=data.get("module_path"),
            build_flags=_optional_str_list(data.get("build_flags"), "build_flags"),
        )


@dataclass(frozen=True)
class RuntimeConfig:
    """Réglages par runtime; seuls ceux du runtime sélectionné s'appliquent."""
    node: Optional[NodeConfig] = None
    python: Optional[PythonConfig] = None
    go: Optional[GoConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeConfig":
        """Crée une instance depuis un dictionnaire."""
        node = data.get("node")
        python = data.get("python")
        go = data.get("go")
        return cls(
            node=NodeConfig.from_dict(node) if isinstance(node, dict) else None,
            python=PythonConfig.from_dict(python) if isinstance(python, dict) else None,
            go=GoConfig.from_dict(go) if isinstance(go, dict) else None,
        )


@dataclass(frozen=True)
class ServerSpec:
    """Identité d'un serveur MCP logique. Immuable une fois chargée."""
    command: str
    args: Tuple[str, ...] = ()
    env: Dict[str, str] = field(default_factory=dict)
    repository: Optional[str] = None
    build_command: Optional[str] = None
    runtime_config: RuntimeConfig = field(default_factory=RuntimeConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSpec":
        """
        Crée une instance depuis un dictionnaire.

        Accepte les clés snake_case et leurs alias camelCase
        (`buildCommand`, `runtimeConfig`).

        Raises:
            ConfigurationError: Si un champ est absent ou mal typé
        """
        command = data.get("command")
        if not isinstance(command, str) or not command.strip():
            raise ConfigurationError("'command' est requis pour un serveur MCP", config_key="command")

        args = data.get("args", [])
        if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
            raise ConfigurationError("'args' doit être une liste de chaînes", config_key="args")

        env = data.get("env", {})
        if not isinstance(env, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in env.items()
        ):
            raise ConfigurationError("'env' doit être un objet chaîne → chaîne", config_key="env")

        build_command = data.get("build_command", data.get("buildCommand"))
        runtime_raw = data.get("runtime_config", data.get("runtimeConfig")) or {}
        if not isinstance(runtime_raw, dict):
            raise ConfigurationError("'runtime_config' doit être un objet", config_key="runtime_config")

        return cls(
            command=command,
            args=tuple(args),
            env=dict(env),
            repository=data.get("repository") or None,
            build_command=build_command or None,
            runtime_config=RuntimeConfig.from_dict(runtime_raw),
        )


@dataclass
class ServersConfig:
    """Fichier de configuration complet: nom logique → ServerSpec."""
    version: str = "1.0"
    servers: Dict[str, ServerSpec] = field(default_factory=dict)

    def get_server(self, name: str) -> ServerSpec:
        """Récupère la configuration d'un serveur par son nom."""
        spec = self.servers.get(name)
        if spec is None:
            raise ConfigurationError(
                f"Configuration serveur introuvable pour '{name}'",
                config_key="servers",
            )
        return spec


@dataclass(frozen=True)
class AuthConfig:
    """Authentification Bearer de l'API HTTP."""
    api_key: Optional[str] = None
    enabled: bool = False

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Crée une instance depuis HTTP_API_KEY / DISABLE_AUTH."""
        api_key = os.getenv("HTTP_API_KEY") or None
        disable_auth = _env_flag("DISABLE_AUTH", default=False)
        return cls(api_key=api_key, enabled=not disable_auth and api_key is not None)


@dataclass
class BridgeSettings:
    """Configuration globale du bridge (variables d'environnement)."""
    config_file: str = DEFAULT_CONFIG_FILE
    server_name: str = DEFAULT_SERVER_NAME
    runtime_type: str = DEFAULT_RUNTIME_TYPE
    port: int = DEFAULT_PORT
    work_dir: str = DEFAULT_WORK_DIR
    git_executable: str = DEFAULT_GIT_EXECUTABLE
    query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S
    handshake_timeout_s: float = DEFAULT_HANDSHAKE_TIMEOUT_S
    provision_timeout_s: Optional[float] = None
    stream_limit: int = DEFAULT_STREAM_LIMIT_BYTES
    log_level: str = "INFO"
    auth: AuthConfig = field(default_factory=AuthConfig)

    @classmethod
    def from_env(cls) -> "BridgeSettings":
        """Crée une instance depuis l'environnement du processus."""
        provision_timeout = _env_float("MCP_PROVISION_TIMEOUT_SECONDS", default=0.0)
        return cls(
            config_file=os.getenv("MCP_CONFIG_FILE", DEFAULT_CONFIG_FILE),
            server_name=os.getenv("MCP_SERVER_NAME", DEFAULT_SERVER_NAME),
            runtime_type=os.getenv("MCP_RUNTIME_TYPE", DEFAULT_RUNTIME_TYPE),
            port=_env_int("PORT", default=DEFAULT_PORT),
            work_dir=os.getenv("MCP_WORK_DIR", DEFAULT_WORK_DIR),
            git_executable=os.getenv("MCP_GIT_EXECUTABLE", DEFAULT_GIT_EXECUTABLE),
            query_timeout_s=_env_float("MCP_QUERY_TIMEOUT_SECONDS", default=DEFAULT_QUERY_TIMEOUT_S),
            handshake_timeout_s=_env_float(
                "MCP_HANDSHAKE_TIMEOUT_SECONDS", default=DEFAULT_HANDSHAKE_TIMEOUT_S
            ),
            provision_timeout_s=provision_timeout or None,
            stream_limit=clamp_stream_limit(
                _env_int("MCP_BRIDGE_STDIO_STREAM_LIMIT", default=DEFAULT_STREAM_LIMIT_BYTES)
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            auth=AuthConfig.from_env(),
        )
