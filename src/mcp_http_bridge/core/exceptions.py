"""
Exceptions personnalisées pour le MCP HTTP Bridge.
"""


class BridgeError(Exception):
    """Exception de base pour toutes les erreurs du bridge."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(BridgeError):
    """Erreur de configuration (serveur inconnu, runtime inconnu, fichier invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class RuntimeSetupError(BridgeError):
    """Erreur d'environnement d'exécution (toolchain absente ou inutilisable).

    Fatale au démarrage: le serveur n'atteint jamais l'état READY.
    """

    def __init__(self, message: str, runtime: str = None, code: str = None, details: dict = None):
        merged = {"runtime": runtime} if runtime else {}
        merged.update(details or {})
        super().__init__(
            message=message,
            code=code or "runtime_error",
            details=merged
        )
        self.runtime = runtime


class ProvisioningError(RuntimeSetupError):
    """Échec du clone ou du build d'un working tree."""

    def __init__(
        self,
        message: str,
        step: str = None,
        exit_code: int = None,
        output_tail: str = None,
    ):
        details = {"step": step, "exit_code": exit_code}
        if output_tail:
            details["output_tail"] = output_tail
        super().__init__(
            message=message,
            code="provisioning_error",
            details=details
        )
        self.step = step
        self.exit_code = exit_code
        self.output_tail = output_tail or ""


class ProcessError(BridgeError):
    """Erreur de communication avec le processus MCP enfant.

    `reason` identifie le cas précis: spawn_failed, pipe_unavailable,
    write_failed, read_failed, connection_closed, timeout, empty_response,
    stream_limit, handshake_rejected, not_ready, closed.
    """

    def __init__(self, message: str, reason: str = "process_error", details: dict = None):
        super().__init__(
            message=message,
            code="process_error",
            details={"reason": reason, **(details or {})}
        )
        self.reason = reason


class AuthenticationError(BridgeError):
    """Erreur d'authentification Bearer."""

    def __init__(self, message: str):
        super().__init__(message=message, code="auth_error")
