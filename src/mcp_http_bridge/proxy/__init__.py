"""
I/O vers les processus MCP stdio.
"""

from .process_bridge import (
    BridgeState,
    ProcessBridge,
    build_initialize_request,
    build_initialized_notification,
)
from .session import SharedSession

__all__ = [
    "BridgeState",
    "ProcessBridge",
    "build_initialize_request",
    "build_initialized_notification",
    "SharedSession",
]
