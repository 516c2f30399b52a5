from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from studycoach.api.agent_proxy import router as agent_proxy_router
from studycoach.api.ai_actions import router as ai_actions_router
from studycoach.api.health import router as health_router
from studycoach.api.study_sessions import action_log
from studycoach.api.study_sessions import router as study_sessions_router
from studycoach.core.auth import api_key_auth_middleware
from studycoach.core.errors import (
    AgentServiceError,
    agent_service_exception_handler,
    http_exception_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from studycoach.core.logging import configure_logging
from studycoach.core.settings import settings
from studycoach.memory.database import engine, initialize_database


configure_logging(settings.log_level)

app = FastAPI(title="Study Coach API", version="0.1.0")
app.include_router(health_router)
app.include_router(study_sessions_router)
app.include_router(ai_actions_router)
app.include_router(agent_proxy_router)
app.middleware("http")(api_key_auth_middleware)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(AgentServiceError, agent_service_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("startup")
async def on_startup():
    if settings.database_init_on_start:
        await initialize_database()


@app.on_event("shutdown")
async def on_shutdown():
    await action_log.drain()
    await engine.dispose()
