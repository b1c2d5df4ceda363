"""
Provisioning des working trees (clone + build).
"""

from .provisioner import CommandResult, Provisioner, overlay_environment, run_command, run_shell

__all__ = [
    "CommandResult",
    "Provisioner",
    "overlay_environment",
    "run_command",
    "run_shell",
]
