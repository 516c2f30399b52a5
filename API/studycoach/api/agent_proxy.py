"""Same-origin proxy to the agent backend.

Browsers post chat-completion bodies here; the server forwards them with its
own key and configured model, and mirrors the upstream status and body.
"""
from typing import Any

import httpx
from fastapi import APIRouter, Body, Request
from fastapi.responses import Response

from studycoach.core.errors import error_response
from studycoach.core.logging import DOMAIN_AGENT, get_domain_logger
from studycoach.core.settings import settings

router = APIRouter(tags=["agent"])
logger = get_domain_logger(__name__, DOMAIN_AGENT)

# Swapped for httpx.MockTransport in tests.
proxy_transport: httpx.AsyncBaseTransport | None = None


@router.post("/agent")
async def proxy_agent_request(request: Request, payload: dict[str, Any] = Body(...)):
    headers = {"Content-Type": "application/json"}
    if settings.agent_api_key:
        headers["Authorization"] = f"Bearer {settings.agent_api_key}"
    body = {**payload, "model": settings.agent_model or payload.get("model")}

    try:
        async with httpx.AsyncClient(timeout=settings.agent_timeout_seconds, transport=proxy_transport) as client:
            upstream = await client.post(settings.agent_endpoint, json=body, headers=headers)
    except httpx.HTTPError as exc:
        logger.error("Agent proxy error: %s", exc)
        return error_response(
            request,
            code="agent_proxy_error",
            message="Failed to proxy agent request",
            status_code=502,
        )

    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        media_type=upstream.headers.get("content-type"),
    )
