"""
Constantes globales du MCP HTTP Bridge.
"""

# ============================================================================
# PROTOCOLE MCP (handshake)
# ============================================================================
MCP_PROTOCOL_VERSION = "2024-11-05"
MCP_CLIENT_NAME = "mcp-http-bridge"
INITIALIZE_REQUEST_ID = 0

# ============================================================================
# TIMEOUTS (secondes)
# ============================================================================
DEFAULT_HANDSHAKE_TIMEOUT_S = 30.0
DEFAULT_QUERY_TIMEOUT_S = 30.0
PROCESS_TERMINATE_GRACE_S = 5.0

# ============================================================================
# STDIO (limite de ligne des StreamReader asyncio)
# ============================================================================
DEFAULT_STREAM_LIMIT_BYTES = 8 * 1024 * 1024  # 8 MiB
MIN_STREAM_LIMIT_BYTES = 64 * 1024
MAX_STREAM_LIMIT_BYTES = 64 * 1024 * 1024  # 64 MiB

# ============================================================================
# PROVISIONING
# ============================================================================
DEFAULT_WORK_DIR = "/tmp/mcp-servers"
DEFAULT_GIT_EXECUTABLE = "git"
VCS_MARKER_DIR = ".git"
OUTPUT_TAIL_CHARS = 2000

# ============================================================================
# SERVEUR HTTP
# ============================================================================
DEFAULT_CONFIG_FILE = "mcp_servers.config.json"
DEFAULT_SERVER_NAME = "default"
DEFAULT_RUNTIME_TYPE = "node"
DEFAULT_PORT = 3000
SERVICE_NAME = "mcp-http-bridge"
