import unittest
from types import SimpleNamespace

import pytest

from spatialhub.ai import llm_client
from spatialhub.ai.llm_client import LlmResponseError, call_llm, parse_json_payload
from spatialhub.ai.prompts import RESOURCE_BATCH_SCHEMA
from spatialhub.observability.trace_store import get_trace_steps


class _FakeResponses:
    def __init__(self, output_text):
        self.output_text = output_text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(output_text=self.output_text, output=None, usage={"total_tokens": 7})


def _fake_client(output_text):
    return SimpleNamespace(responses=_FakeResponses(output_text))


def test_parse_json_payload_strips_fences():
    assert parse_json_payload('```json\n{"items": []}\n```') == {"items": []}


def test_parse_json_payload_cuts_array_out_of_chatter():
    assert parse_json_payload('Here you go: [{"a": 1}] done.') == [{"a": 1}]


def test_parse_json_payload_skips_brackets_in_chatter():
    payload = parse_json_payload('Result [2 rows]:\n{"items": [{"name": "a"}]}')
    assert payload == {"items": [{"name": "a"}]}


def test_parse_json_payload_prefers_the_largest_value():
    assert parse_json_payload('See [1] below. {"items": [1, 2]} Thanks {"x": 0}') == {"items": [1, 2]}


@pytest.mark.parametrize("content", [None, "", "   ", "no json here", "[1, 2"])
def test_parse_json_payload_rejects_bad_content(content):
    with pytest.raises(LlmResponseError):
        parse_json_payload(content)


def test_mock_mode_serves_extraction_fixture(monkeypatch):
    monkeypatch.setenv("LLM_DISABLED", "true")
    result = call_llm(
        "name,address,capacity",
        schema=RESOURCE_BATCH_SCHEMA,
        trace_id="trace-mock",
        step_id="resource_extract",
        mock_key="resource_extract",
    )
    assert result.provider == "mock"
    assert len(result.parsed["items"]) == 3
    steps = get_trace_steps("trace-mock")
    assert [step["step_id"] for step in steps] == ["resource_extract"]


def test_mock_mode_serves_free_text_fixture(monkeypatch):
    monkeypatch.setenv("LLM_DISABLED", "true")
    result = call_llm("insight prompt", mock_key="insight_report")
    assert result.parsed is None
    assert result.text.strip()
    assert not result.text.startswith("{")


def test_openai_path_requests_strict_schema(monkeypatch):
    monkeypatch.setenv("LLM_DISABLED", "false")
    client = _fake_client('{"items": []}')
    monkeypatch.setattr(llm_client, "get_openai_client", lambda: client)
    result = call_llm("csv", schema=RESOURCE_BATCH_SCHEMA, model="gpt-test", trace_id="trace-openai")
    assert result.parsed == {"items": []}
    request = client.responses.calls[0]
    assert request["model"] == "gpt-test"
    assert request["text"]["format"]["strict"] is True
    assert request["text"]["format"]["name"] == RESOURCE_BATCH_SCHEMA["title"]
    step = get_trace_steps("trace-openai")[0]
    assert step["provider"] == "openai"
    assert step["usage"] == {"total_tokens": 7}


def test_openai_empty_response_raises(monkeypatch):
    monkeypatch.setenv("LLM_DISABLED", "false")
    monkeypatch.setattr(llm_client, "get_openai_client", lambda: _fake_client(""))
    with pytest.raises(LlmResponseError):
        call_llm("prompt", system_prompt="system")


class MockFixtureTests(unittest.TestCase):
    def setUp(self):
        self._patch = pytest.MonkeyPatch()
        self._patch.setenv("LLM_DISABLED", "true")

    def tearDown(self):
        self._patch.undo()

    def test_missing_fixture_raises(self):
        with self.assertRaises(RuntimeError):
            call_llm("prompt", mock_key="no_such_fixture")

    def test_demand_fixture_parses(self):
        result = call_llm("csv", schema={"title": "DemandBatch"}, mock_key="demand_extract")
        self.assertEqual(len(result.parsed["items"]), 2)


def test_openai_client_is_shared_per_key(monkeypatch):
    from spatialhub.ai import openai_client

    monkeypatch.setattr(openai_client, "_CLIENTS", {})
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    first = openai_client.get_openai_client()
    assert openai_client.get_openai_client() is first
    monkeypatch.setenv("OPENAI_API_KEY", "sk-other")
    assert openai_client.get_openai_client() is not first


def test_openai_client_requires_key(monkeypatch, tmp_path):
    from spatialhub.ai import openai_client

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY_FILE", str(tmp_path / "missing.key"))
    with pytest.raises(RuntimeError):
        openai_client.get_openai_client()
