"""
Authentification Bearer de l'API HTTP.
"""
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

from ..config.settings import AuthConfig
from ..core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def check_bearer_token(authorization: Optional[str], auth_config: AuthConfig) -> None:
    """
    Valide l'en-tête Authorization contre la clé API configurée.

    Raises:
        AuthenticationError: En-tête absent, schéma non Bearer ou clé invalide
    """
    if not auth_config.enabled or not auth_config.api_key:
        return

    if authorization is None:
        raise AuthenticationError("Missing Authorization header")

    if not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("Authorization header must use Bearer token")

    provided = authorization[len(BEARER_PREFIX):]
    if not hmac.compare_digest(provided.encode("utf-8"), auth_config.api_key.encode("utf-8")):
        logger.debug("Clé API invalide (longueur: %d)", len(provided))
        raise AuthenticationError("Invalid API key")


async def require_bearer_token(request: Request) -> None:
    """Dépendance FastAPI: 401 si l'authentification échoue."""
    auth_config = getattr(request.app.state, "auth_config", None) or AuthConfig()
    try:
        check_bearer_token(request.headers.get("authorization"), auth_config)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=401,
            detail={"error": "Unauthorized", "message": e.message},
            headers={"WWW-Authenticate": "Bearer"},
        )
