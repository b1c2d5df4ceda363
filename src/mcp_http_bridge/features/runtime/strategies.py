"""mcp_http_bridge.features.runtime.strategies

Stratégies par runtime (Node.js, Python, Go) partageant un même contrat:
- vérifier que la toolchain est présente (commande de version)
- construire l'environnement du processus enfant
- démarrer le serveur MCP (délégué à ProcessBridge.spawn)

Ensemble fermé: pas de chargement de plugins.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from ...config.settings import RuntimeConfig, ServerSpec
from ...core.constants import (
    DEFAULT_HANDSHAKE_TIMEOUT_S,
    DEFAULT_QUERY_TIMEOUT_S,
    DEFAULT_STREAM_LIMIT_BYTES,
)
from ...core.exceptions import RuntimeSetupError
from ...proxy.process_bridge import ProcessBridge
from ..provisioning.provisioner import overlay_environment, run_command

logger = logging.getLogger(__name__)

TOOLCHAIN_PROBE_TIMEOUT_S = 30.0


class RuntimeStrategy(abc.ABC):
    """Contrat commun à tous les runtimes."""

    name: str = ""
    display_name: str = ""
    version_command: Tuple[str, ...] = ()

    @abc.abstractmethod
    def required_version(self, runtime_config: Optional[RuntimeConfig]) -> Optional[str]:
        """Version déclarée dans la section du runtime, s'il y en a une."""

    async def check_toolchain_available(self, runtime_config: Optional[RuntimeConfig] = None) -> str:
        """
        Sonde la toolchain via sa commande de version.

        Returns:
            La version rapportée par l'outil

        Raises:
            RuntimeSetupError: outil introuvable ou code de sortie non nul (pas de retry)
        """

        logger.info("Vérification de l'environnement %s", self.display_name)
        try:
            result = await run_command(*self.version_command, timeout_s=TOOLCHAIN_PROBE_TIMEOUT_S)
        except OSError as e:
            raise RuntimeSetupError(
                f"{self.display_name} introuvable: {e}",
                runtime=self.name,
            ) from e
        except asyncio.TimeoutError:
            raise RuntimeSetupError(
                f"{self.display_name}: la commande de version ne répond pas",
                runtime=self.name,
            ) from None

        if result.returncode != 0:
            raise RuntimeSetupError(
                f"{self.display_name} n'est pas disponible (code {result.returncode})",
                runtime=self.name,
                details={"exit_code": result.returncode, "output_tail": result.output_tail},
            )

        version = result.output.strip()
        logger.info("Version %s: %s", self.display_name, version)

        required = self.required_version(runtime_config)
        if required and required.strip().lstrip("v") not in version:
            logger.warning(
                "%s: version demandée '%s', version détectée '%s'",
                self.display_name,
                required,
                version,
            )
        return version

    def child_environment(self, spec: ServerSpec, working_dir: str | Path) -> dict[str, str]:
        """Environnement ambiant surchargé par `spec.env`."""
        return overlay_environment(spec.env)

    async def start(
        self,
        spec: ServerSpec,
        working_dir: str | Path,
        *,
        query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
        handshake_timeout_s: float = DEFAULT_HANDSHAKE_TIMEOUT_S,
        stream_limit: int = DEFAULT_STREAM_LIMIT_BYTES,
        label: Optional[str] = None,
    ) -> ProcessBridge:
        """Démarre le serveur MCP dans `working_dir`."""

        logger.info("Démarrage du serveur MCP %s: %s %s", self.display_name, spec.command, list(spec.args))
        return await ProcessBridge.spawn(
            spec.command,
            spec.args,
            self.child_environment(spec, working_dir),
            working_dir,
            query_timeout_s=query_timeout_s,
            handshake_timeout_s=handshake_timeout_s,
            stream_limit=stream_limit,
            label=label,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class NodeRuntime(RuntimeStrategy):
    """Serveurs MCP Node.js (npx, node, tsx...)."""

    name = "node"
    display_name = "Node.js"
    version_command = ("node", "--version")

    def required_version(self, runtime_config: Optional[RuntimeConfig]) -> Optional[str]:
        if runtime_config is None or runtime_config.node is None:
            return None
        return runtime_config.node.version


class PythonRuntime(RuntimeStrategy):
    """Serveurs MCP Python, avec virtualenv optionnel."""

    name = "python"
    display_name = "Python"
    version_command = ("python3", "--version")

    def required_version(self, runtime_config: Optional[RuntimeConfig]) -> Optional[str]:
        if runtime_config is None or runtime_config.python is None:
            return None
        return runtime_config.python.version

    def child_environment(self, spec: ServerSpec, working_dir: str | Path) -> dict[str, str]:
        """Active `venv_path` (relatif au working tree) sauf si `spec.env` fixe déjà PATH/VIRTUAL_ENV."""

        env = super().child_environment(spec, working_dir)
        python_config = spec.runtime_config.python
        if python_config is None or not python_config.venv_path:
            return env

        venv = Path(python_config.venv_path).expanduser()
        if not venv.is_absolute():
            venv = Path(working_dir) / venv
        bin_dir = venv / ("Scripts" if os.name == "nt" else "bin")

        if "VIRTUAL_ENV" not in spec.env:
            env["VIRTUAL_ENV"] = str(venv)
        if "PATH" not in spec.env:
            current = env.get("PATH", "")
            env["PATH"] = os.pathsep.join(p for p in (str(bin_dir), current) if p)
        return env


class GoRuntime(RuntimeStrategy):
    """Serveurs MCP Go (binaire compilé ou `go run`)."""

    name = "go"
    display_name = "Go"
    version_command = ("go", "version")

    def required_version(self, runtime_config: Optional[RuntimeConfig]) -> Optional[str]:
        if runtime_config is None or runtime_config.go is None:
            return None
        return runtime_config.go.version
