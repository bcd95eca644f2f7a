"""
tests/conftest.py
Shared fixtures: an app client, a scripted LLM and counting service fakes.
Run: pytest tests/ -v
"""

import pytest
from fastapi.testclient import TestClient

from bhasha.core.rate_limit import limiter
from bhasha.main import app
from bhasha.services.llm_service import llm_service
from bhasha.services.memory_service import InMemorySessionStore


class ScriptedLLM:
    """Stands in for LLMService.complete; replies come from a queue or a callable."""

    def __init__(self):
        self.calls: list[dict] = []
        self.replies: list[str] = []
        self.default = '{"reply": "Hello! Let us practise.", "intent": "greeting", "confidence": 0.9}'

    async def __call__(self, system, user, **kwargs):
        self.calls.append({"system": system, "user": user, **kwargs})
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return self.default


class CountingService:
    """Records every adapter call; used to prove validators short-circuit."""

    def __init__(self, result=None):
        self.calls = 0
        self.result = result

    async def _called(self, *args, **kwargs):
        self.calls += 1
        return self.result

    extract_text = transcribe = evaluate_pronunciation = _called
    check = check_batch = _called
    start_session = send_message = _called
    export_document = export_grammar_report = export_data = _called


@pytest.fixture(autouse=True)
def reset_rate_limit():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def llm(monkeypatch):
    scripted = ScriptedLLM()
    monkeypatch.setattr(llm_service, "complete", scripted)
    return scripted


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def client():
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()
