from fastapi import APIRouter

from studycoach.core.settings import settings
from studycoach.orchestrator.registry import registry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "studycoach-api",
        "active_sessions": len(registry),
        "action_log_enabled": settings.action_log_enabled,
    }
