import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StudyCoachError(Exception):
    """Base class for domain errors raised inside the study coach."""


class AgentServiceError(StudyCoachError):
    """The agent endpoint failed or answered with a non-2xx status."""

    def __init__(self, message: str, *, status: int | None = None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class AgentResponseError(AgentServiceError):
    """The agent answered 2xx but the payload does not match the expected tool contract."""


class PreconditionError(StudyCoachError):
    """An operation was invoked without the session state it requires."""


class InvariantViolation(StudyCoachError):
    """Internal ordering defect; never shown to the learner."""


class SessionConfigurationError(StudyCoachError):
    """Unrecoverable misuse while constructing a session."""


def describe_error(exc: BaseException, fallback: str) -> str:
    text = str(exc).strip()
    return text or fallback


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    status_code: int,
    details=None,
) -> JSONResponse:
    payload = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
            "details": details,
        },
    }
    return JSONResponse(status_code=status_code, content=payload)


async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(
        request,
        code="http_error",
        message=str(exc.detail),
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        request,
        code="validation_error",
        message="Request validation failed",
        status_code=422,
        details=exc.errors(),
    )


async def agent_service_exception_handler(request: Request, exc: AgentServiceError):
    logger.warning("Agent service failure | request_id=%s status=%s", get_request_id(request), exc.status)
    return error_response(
        request,
        code="agent_service_error",
        message=str(exc),
        status_code=502,
        details={"upstream_status": exc.status},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s", get_request_id(request), exc_info=exc)
    return error_response(
        request,
        code="internal_error",
        message="Internal server error",
        status_code=500,
    )


async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id")
    request.state.request_id = incoming or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["x-request-id"] = request.state.request_id
    return response
