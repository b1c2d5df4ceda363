"""mcp_http_bridge.features.provisioning.provisioner

Préparation du working tree d'un serveur MCP avant son démarrage.

Ordre garanti par `provision()`:
    1. création du répertoire (idempotente)
    2. `git clone` si un dépôt est configuré et qu'aucun `.git` n'existe
    3. commande de build (shell) si configurée

Exécuté une seule fois, séquentiellement, avant que le processus ne soit exposé.
Pas de re-provisioning ni de détection de dérive: un `.git` présent suffit à
considérer le dépôt comme provisionné, sans revalider l'URL.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from ...config.settings import ServerSpec
from ...core.constants import DEFAULT_GIT_EXECUTABLE, OUTPUT_TAIL_CHARS, VCS_MARKER_DIR
from ...core.exceptions import ConfigurationError, ProvisioningError

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class CommandResult:
    """Résultat d'une commande externe (stdout+stderr fusionnés)."""

    returncode: int
    output: str

    @property
    def output_tail(self) -> str:
        return self.output[-OUTPUT_TAIL_CHARS:]


def overlay_environment(env: Mapping[str, str] | None) -> dict[str, str]:
    """Environnement ambiant surchargé par `env` (les entrées explicites gagnent)."""

    merged = dict(os.environ)
    if env:
        merged.update(env)
    return merged


async def _communicate(process: asyncio.subprocess.Process, timeout_s: float | None) -> CommandResult:
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        raise
    output = (stdout or b"").decode("utf-8", errors="replace")
    return CommandResult(returncode=int(process.returncode or 0), output=output)


async def run_command(
    *argv: str,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout_s: float | None = None,
) -> CommandResult:
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        cwd=str(cwd) if cwd is not None else None,
        env=dict(env) if env is not None else None,
    )
    return await _communicate(process, timeout_s)


async def run_shell(
    command: str,
    *,
    cwd: str | Path,
    env: Mapping[str, str],
    timeout_s: float | None = None,
) -> CommandResult:
    # asyncio choisit le shell de la plateforme (/bin/sh ou cmd.exe).
    process = await asyncio.create_subprocess_shell(
        command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        cwd=str(cwd),
        env=dict(env),
    )
    return await _communicate(process, timeout_s)


def _log_output(step: str, output: str) -> None:
    for line in output.splitlines():
        logger.debug("%s | %s", step, line)


class Provisioner:
    """
    Prépare les working trees sous `base_dir`.

    Le chemin d'un working tree est dérivé du nom logique du serveur (jamais
    aléatoire): des démarrages répétés réutilisent le même répertoire.
    """

    def __init__(
        self,
        base_dir: str | Path,
        *,
        git_executable: str = DEFAULT_GIT_EXECUTABLE,
        timeout_s: float | None = None,
    ):
        self.base_dir = Path(base_dir).expanduser()
        self.git_executable = git_executable
        self.timeout_s = timeout_s

    def working_tree_path(self, server_name: str) -> Path:
        """Chemin absolu déterministe `base_dir/<nom assaini>`."""

        safe_name = _UNSAFE_NAME_CHARS.sub("_", (server_name or "").strip())
        if safe_name in {"", ".", ".."}:
            raise ConfigurationError(
                f"Nom de serveur invalide pour un working tree: '{server_name}'",
                config_key="server_name",
            )
        return (self.base_dir / safe_name).resolve(strict=False)

    def ensure_working_tree(self, server_name: str) -> Path:
        """Crée le working tree s'il n'existe pas (idempotent) et retourne son chemin."""

        path = self.working_tree_path(server_name)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisioningError(
                f"Impossible de créer le répertoire de travail '{path}': {e}",
                step="workdir",
            ) from e
        return path

    async def clone_if_needed(self, repository_url: str, path: str | Path) -> bool:
        """
        Clone `repository_url` dans `path` sauf si un `.git` y existe déjà.

        Returns:
            True si un clone a été effectué, False si déjà provisionné

        Raises:
            ProvisioningError: git introuvable, timeout ou code de sortie non nul
        """

        path = Path(path)
        if (path / VCS_MARKER_DIR).exists():
            logger.info("Dépôt déjà présent dans %s, clone ignoré", path)
            return False

        logger.info("Clonage du dépôt %s → %s", repository_url, path)
        try:
            result = await run_command(
                self.git_executable, "clone", repository_url, str(path),
                timeout_s=self.timeout_s,
            )
        except OSError as e:
            raise ProvisioningError(
                f"Impossible d'exécuter git clone: {e}",
                step="clone",
            ) from e
        except asyncio.TimeoutError:
            raise ProvisioningError(
                f"git clone interrompu après {self.timeout_s:g} s",
                step="clone",
            ) from None

        _log_output("clone", result.output)
        if result.returncode != 0:
            raise ProvisioningError(
                f"git clone a échoué (code {result.returncode})",
                step="clone",
                exit_code=result.returncode,
                output_tail=result.output_tail,
            )

        logger.info("Dépôt cloné dans %s", path)
        return True

    async def run_build(
        self,
        build_command: str,
        path: str | Path,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """
        Exécute la commande de build via le shell, dans `path`.

        La sortie est capturée et loguée quel que soit le résultat.

        Raises:
            ProvisioningError: shell introuvable, timeout ou code de sortie non nul
        """

        logger.info("Build dans %s: %s", path, build_command)
        try:
            result = await run_shell(
                build_command,
                cwd=path,
                env=overlay_environment(env),
                timeout_s=self.timeout_s,
            )
        except OSError as e:
            raise ProvisioningError(
                f"Impossible d'exécuter la commande de build: {e}",
                step="build",
            ) from e
        except asyncio.TimeoutError:
            raise ProvisioningError(
                f"Build interrompu après {self.timeout_s:g} s",
                step="build",
            ) from None

        _log_output("build", result.output)
        if result.returncode != 0:
            raise ProvisioningError(
                f"Le build a échoué (code {result.returncode})",
                step="build",
                exit_code=result.returncode,
                output_tail=result.output_tail,
            )

        logger.info("Build terminé avec succès")

    async def provision(self, server_name: str, spec: ServerSpec) -> Path:
        """Répertoire → clone (optionnel) → build (optionnel). Retourne le working tree."""

        path = self.ensure_working_tree(server_name)
        if spec.repository:
            await self.clone_if_needed(spec.repository, path)
        if spec.build_command:
            await self.run_build(spec.build_command, path, spec.env)
        return path
