"""
AI action logger: records every agent interaction for audit and debugging.

Writes are fire-and-forget. ``log_ai_action`` schedules a detached task and
returns immediately; a failing or slow sink never blocks or fails the session
operation that produced the record.
"""
from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

import httpx

from studycoach.core.logging import DOMAIN_AUDIT, get_domain_logger
from studycoach.core.settings import settings
from studycoach.schemas.action_log import ActionLogCreate

logger = get_domain_logger(__name__, DOMAIN_AUDIT)


class ActionLogSink(ABC):
    def __init__(self):
        self._pending: set[asyncio.Task] = set()

    @abstractmethod
    async def write(self, record: ActionLogCreate) -> None:
        raise NotImplementedError

    def log_ai_action(self, record: ActionLogCreate) -> asyncio.Task | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping AI action log for session=%s", record.session_id)
            return None
        task = loop.create_task(self._write_safely(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write_safely(self, record: ActionLogCreate) -> None:
        try:
            await self.write(record)
            logger.info(
                "AI action logged: type=%s session=%s topic=%s duration_ms=%s",
                record.action_type, record.session_id, record.topic, record.duration_ms,
            )
        except Exception as exc:
            logger.warning("Failed to log AI action: %s", exc)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class NullActionLogSink(ActionLogSink):
    async def write(self, record: ActionLogCreate) -> None:
        return None


class HttpActionLogSink(ActionLogSink):
    """POSTs records to a remote ``/ai-actions`` endpoint."""

    def __init__(self, base_url: str, *, timeout: float = 10.0, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__()
        self.url = f"{base_url.rstrip('/')}/ai-actions"
        self.timeout = timeout
        self._transport = transport

    async def write(self, record: ActionLogCreate) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json=record.model_dump(mode="json", exclude_none=True))
            response.raise_for_status()


class DatabaseActionLogSink(ActionLogSink):
    """Inserts records through the in-process action log service."""

    async def write(self, record: ActionLogCreate) -> None:
        from studycoach.memory.database import SessionLocal
        from studycoach.services.action_logs import create_action_log

        async with SessionLocal() as db:
            await create_action_log(db, record)


def build_action_log_sink() -> ActionLogSink:
    if not settings.action_log_enabled:
        return NullActionLogSink()
    if settings.action_log_url:
        return HttpActionLogSink(settings.action_log_url)
    return DatabaseActionLogSink()
