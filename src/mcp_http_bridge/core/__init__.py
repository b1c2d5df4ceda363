"""
Cœur du MCP HTTP Bridge.
Modules indépendants sans dépendances externes au package.
"""

from .exceptions import (
    BridgeError,
    ConfigurationError,
    RuntimeSetupError,
    ProvisioningError,
    ProcessError,
    AuthenticationError,
)
from .constants import (
    MCP_PROTOCOL_VERSION,
    DEFAULT_HANDSHAKE_TIMEOUT_S,
    DEFAULT_QUERY_TIMEOUT_S,
    DEFAULT_STREAM_LIMIT_BYTES,
    DEFAULT_WORK_DIR,
)

__all__ = [
    # Exceptions
    "BridgeError",
    "ConfigurationError",
    "RuntimeSetupError",
    "ProvisioningError",
    "ProcessError",
    "AuthenticationError",
    # Constants
    "MCP_PROTOCOL_VERSION",
    "DEFAULT_HANDSHAKE_TIMEOUT_S",
    "DEFAULT_QUERY_TIMEOUT_S",
    "DEFAULT_STREAM_LIMIT_BYTES",
    "DEFAULT_WORK_DIR",
]
