"""
Configuration des tests pytest.
"""
import os
import sys
from pathlib import Path

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

FAKE_MCP_SERVER = Path(__file__).resolve().parent / "fixtures" / "fake_mcp_server_stdio.py"


def pytest_configure(config):
    """Enregistre les marqueurs utilisés par la suite."""
    config.addinivalue_line(
        "markers", "asyncio: marque un test comme asynchrone"
    )
    config.addinivalue_line(
        "markers", "unit: test unitaire sans réseau"
    )


@pytest.fixture
def fake_server_path() -> Path:
    """Chemin du faux serveur MCP stdio (lancé avec sys.executable)."""
    return FAKE_MCP_SERVER


@pytest.fixture
def servers_config_dict():
    """Configuration multi-serveurs minimale."""
    return {
        "version": "1.0",
        "servers": {
            "filesystem": {
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-filesystem", "/data"],
                "env": {"NODE_ENV": "production"},
            },
            "from-git": {
                "repository": "https://example.invalid/mcp/from-git.git",
                "build_command": "npm ci && npm run build",
                "command": "node",
                "args": ["dist/index.js"],
                "runtime_config": {"node": {"version": "20"}},
            },
        },
    }
