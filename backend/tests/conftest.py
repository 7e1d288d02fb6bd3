"""Pytest fixtures for spatialhub tests (ingestion, insights, session, api)."""
import sys
from pathlib import Path
from typing import Any, List, Optional

import pytest

# Ensure backend is on path
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from spatialhub.ai.llm_client import LlmResult  # noqa: E402
from spatialhub.observability.trace_store import clear_traces  # noqa: E402


class FakeLlm:
    """Scripted stand-in for call_llm: pops one response (text or exception) per call."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    def __call__(self, prompt: str, **kwargs: Any) -> LlmResult:
        self.calls.append({"prompt": prompt, **kwargs})
        response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, Exception):
            raise response
        return LlmResult(
            text=response,
            parsed=None,
            model="fake",
            provider="fake",
            usage={},
            latency_ms=0,
        )


@pytest.fixture
def fake_llm():
    return FakeLlm


@pytest.fixture(autouse=True)
def _isolate_llm_env(monkeypatch):
    monkeypatch.delenv("LLM_PROVIDER", raising=False)
    monkeypatch.delenv("LLM_FIXTURE_DIR", raising=False)
    clear_traces()
    yield
    clear_traces()
