"""
Sélection d'une stratégie de runtime par son nom logique.
"""
from typing import Dict, List, Type

from ...core.exceptions import ConfigurationError
from .strategies import GoRuntime, NodeRuntime, PythonRuntime, RuntimeStrategy

RUNTIME_ALIASES: Dict[str, Type[RuntimeStrategy]] = {
    "node": NodeRuntime,
    "nodejs": NodeRuntime,
    "javascript": NodeRuntime,
    "typescript": NodeRuntime,
    "python": PythonRuntime,
    "python3": PythonRuntime,
    "py": PythonRuntime,
    "go": GoRuntime,
    "golang": GoRuntime,
}


def supported_runtime_names() -> List[str]:
    """Noms de runtime reconnus (triés)."""
    return sorted(RUNTIME_ALIASES)


def select_runtime(runtime_name: str) -> RuntimeStrategy:
    """
    Retourne la stratégie associée à `runtime_name` (insensible à la casse).

    Raises:
        ConfigurationError: Runtime inconnu (aucun processus n'est lancé)
    """
    key = (runtime_name or "").strip().lower()
    strategy_cls = RUNTIME_ALIASES.get(key)
    if strategy_cls is None:
        raise ConfigurationError(
            f"Type de runtime non supporté: '{runtime_name}' "
            f"(attendu: {', '.join(supported_runtime_names())})",
            config_key="runtime",
        )
    return strategy_cls()
