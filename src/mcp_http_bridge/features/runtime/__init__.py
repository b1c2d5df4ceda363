"""
Runtimes MCP supportés (Node.js, Python, Go).
"""

from .selector import RUNTIME_ALIASES, select_runtime, supported_runtime_names
from .strategies import GoRuntime, NodeRuntime, PythonRuntime, RuntimeStrategy

__all__ = [
    "RUNTIME_ALIASES",
    "select_runtime",
    "supported_runtime_names",
    "GoRuntime",
    "NodeRuntime",
    "PythonRuntime",
    "RuntimeStrategy",
]
