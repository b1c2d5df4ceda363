"""Routes API: forwarding JSON-RPC vers le serveur MCP stdio.

Le payload `command` est un message JSON-RPC complet, transmis tel quel sur
une seule ligne; la réponse est la ligne brute renvoyée par le serveur.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ...core.exceptions import ProcessError
from ..auth import require_bearer_token

logger = logging.getLogger(__name__)

router = APIRouter()


class McpRequest(BaseModel):
    command: str = Field(..., min_length=1, description="Message JSON-RPC complet (une ligne)")


class McpResponse(BaseModel):
    result: str = Field(..., description="Ligne de réponse brute du serveur MCP")


@router.post("/v1", response_model=McpResponse, dependencies=[Depends(require_bearer_token)])
async def api_mcp_forward(payload: McpRequest, request: Request):
    """Forwarde un message JSON-RPC au serveur MCP et retourne sa réponse."""

    session = getattr(request.app.state, "session", None)
    if session is None:
        return JSONResponse(
            status_code=503,
            content={"error": "unavailable", "message": "Serveur MCP non démarré"},
        )

    message = payload.command.rstrip("\r\n")
    if "\n" in message or "\r" in message:
        # Une ligne par message: un saut de ligne interne désynchroniserait le pipe.
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_request", "message": "Le message JSON-RPC doit tenir sur une seule ligne"},
        )

    try:
        reply = await session.forward(message)
    except ProcessError as e:
        logger.error("Requête MCP en échec: %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": e.code, "reason": e.reason, "message": e.message},
        )

    return McpResponse(result=reply)
