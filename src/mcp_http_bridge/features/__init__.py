"""
Fonctionnalités du bridge: provisioning, runtimes, démarrage de session.
"""

from .provisioning import Provisioner
from .runtime import RuntimeStrategy, select_runtime
from .session_factory import start_session

__all__ = [
    "Provisioner",
    "RuntimeStrategy",
    "select_runtime",
    "start_session",
]
