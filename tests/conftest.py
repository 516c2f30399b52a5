from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - no schema creation against a live database
# - no action log writes
# - no server-side agent key, so sessions must bring their own agent
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_INIT_ON_START", "false")
os.environ.setdefault("ACTION_LOG_ENABLED", "false")
os.environ.setdefault("AGENT_API_KEY", "")
os.environ.setdefault("ADMIN_API_KEY", "")

from studycoach.main import app  # noqa: E402
from studycoach.orchestrator.registry import registry  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc


@pytest.fixture(autouse=True)
def _clear_sessions():
    yield
    registry.clear()
