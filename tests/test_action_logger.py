from __future__ import annotations

import json

import httpx
import pytest

from studycoach.audit import action_logger
from studycoach.audit.action_logger import (
    DatabaseActionLogSink,
    HttpActionLogSink,
    NullActionLogSink,
    build_action_log_sink,
)
from studycoach.core.settings import settings
from studycoach.schemas.action_log import ActionLogCreate

from agent_fakes import RecordingSink


def _record(**overrides) -> ActionLogCreate:
    fields = {
        "dashboard_id": 4,
        "session_id": "session-1",
        "action_type": "decide_next_action",
        "tool_call_data": {"action": "continue_session"},
        "reasoning": "keep going",
        "topic": "A",
        "mastery_level": 52,
        "duration_ms": 120,
    }
    fields.update(overrides)
    return ActionLogCreate(**fields)


@pytest.mark.asyncio
async def test_log_ai_action_returns_immediately_and_writes_in_background():
    sink = RecordingSink()
    task = sink.log_ai_action(_record())
    assert task is not None
    assert sink.records == []
    await sink.drain()
    assert [r.session_id for r in sink.records] == ["session-1"]
    assert sink.pending == 0


@pytest.mark.asyncio
async def test_failed_write_is_swallowed():
    sink = RecordingSink(fail=True)
    task = sink.log_ai_action(_record())
    await sink.drain()
    assert task.done()
    assert task.exception() is None


def test_log_ai_action_without_event_loop_is_dropped():
    assert RecordingSink().log_ai_action(_record()) is None


@pytest.mark.asyncio
async def test_http_sink_posts_to_ai_actions():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 1})

    sink = HttpActionLogSink("http://logs.test/api/", transport=httpx.MockTransport(handler))
    sink.log_ai_action(_record())
    await sink.drain()

    assert seen["url"] == "http://logs.test/api/ai-actions"
    assert seen["body"]["action_type"] == "decide_next_action"
    assert seen["body"]["tool_call_data"] == {"action": "continue_session"}
    assert "question_id" not in seen["body"]


@pytest.mark.asyncio
async def test_http_sink_server_error_does_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="db down")

    sink = HttpActionLogSink("http://logs.test", transport=httpx.MockTransport(handler))
    task = sink.log_ai_action(_record())
    await sink.drain()
    assert task.exception() is None


def test_build_action_log_sink_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "action_log_enabled", False)
    assert isinstance(build_action_log_sink(), NullActionLogSink)

    monkeypatch.setattr(settings, "action_log_enabled", True)
    monkeypatch.setattr(settings, "action_log_url", "http://logs.test")
    sink = build_action_log_sink()
    assert isinstance(sink, HttpActionLogSink)
    assert sink.url == "http://logs.test/ai-actions"

    monkeypatch.setattr(settings, "action_log_url", "")
    assert isinstance(action_logger.build_action_log_sink(), DatabaseActionLogSink)


def test_record_validation_bounds():
    with pytest.raises(ValueError):
        _record(mastery_level=101)
    with pytest.raises(ValueError):
        _record(action_type="summarize")
