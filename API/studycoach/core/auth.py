from fastapi import Header, HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse

from studycoach.core.settings import settings


EXEMPT_PATH_PREFIXES = (
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
)


async def api_key_auth_middleware(request: Request, call_next):
    if settings.gateway_auth_enabled:
        path = request.url.path
        if not any(path.startswith(prefix) for prefix in EXEMPT_PATH_PREFIXES):
            provided = request.headers.get("x-api-key", "")
            if not settings.gateway_api_key or provided != settings.gateway_api_key:
                return JSONResponse(
                    status_code=401,
                    content={
                        "success": False,
                        "error": {
                            "code": "http_error",
                            "message": "Unauthorized: invalid or missing x-api-key",
                            "request_id": request.headers.get("x-request-id", "unknown"),
                            "details": None,
                        },
                    },
                )
    return await call_next(request)


async def require_admin(x_admin_key: str = Header(default="")) -> None:
    if not settings.admin_api_key or x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=403, detail="Admin access required")
