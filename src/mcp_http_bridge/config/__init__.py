"""
Configuration du MCP HTTP Bridge.
"""

from .loader import load_servers_config, load_server_spec, parse_servers_config
from .settings import (
    AuthConfig,
    BridgeSettings,
    GoConfig,
    NodeConfig,
    PythonConfig,
    RuntimeConfig,
    ServerSpec,
    ServersConfig,
)

__all__ = [
    "load_servers_config",
    "load_server_spec",
    "parse_servers_config",
    "AuthConfig",
    "BridgeSettings",
    "GoConfig",
    "NodeConfig",
    "PythonConfig",
    "RuntimeConfig",
    "ServerSpec",
    "ServersConfig",
]
