from __future__ import annotations

import json
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from spatialhub.ai.openai_client import DEFAULT_OPENAI_MODEL, get_openai_client
from spatialhub.observability.trace_store import record_llm_call

try:
    from anthropic import Anthropic  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    Anthropic = None

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
SchemaT = Optional[Type[ModelT] | Dict[str, Any]]


class LlmResponseError(RuntimeError):
    """The model answered, but with empty or unparseable content."""


@dataclass
class LlmResult:
    text: str
    parsed: Optional[Any]
    model: str
    provider: str
    usage: Dict[str, Any]
    latency_ms: int


@dataclass
class _Request:
    prompt: str
    schema: SchemaT
    temperature: float
    model: Optional[str]
    system_prompt: Optional[str]
    trace_id: str
    step_id: str
    input_refs: Dict[str, Any] = field(default_factory=dict)

    def messages(self) -> list[Dict[str, str]]:
        messages = [{"role": "user", "content": self.prompt}]
        if self.system_prompt:
            messages.insert(0, {"role": "system", "content": self.system_prompt})
        return messages


def call_llm(
    prompt: str,
    schema: SchemaT = None,
    temperature: Optional[float] = None,
    model: Optional[str] = None,
    system_prompt: Optional[str] = None,
    trace_id: Optional[str] = None,
    step_id: Optional[str] = None,
    input_refs: Optional[Dict[str, Any]] = None,
    mock_key: Optional[str] = None,
) -> LlmResult:
    """Run one model call and record it under ``trace_id``.

    ``LLM_DISABLED=true`` serves ``<mock_key>.json`` from the fixture directory
    instead of calling out. ``LLM_PROVIDER`` picks ``openai`` (default) or
    ``claude``. With a schema the answer is parsed into ``LlmResult.parsed``;
    an empty or unparseable answer raises ``LlmResponseError``.
    """
    request = _Request(
        prompt=prompt,
        schema=schema,
        temperature=0.2 if temperature is None else temperature,
        model=model,
        system_prompt=system_prompt,
        trace_id=trace_id or str(uuid.uuid4()),
        step_id=step_id or str(uuid.uuid4()),
        input_refs=dict(input_refs or {}),
    )

    if os.getenv("LLM_DISABLED", "false").lower() == "true":
        result = _load_mock_response(prompt, schema, mock_key=mock_key)
        _record(request, "mock", "mock", result.text, {"mock": True}, 0)
        return result

    provider = "claude" if os.getenv("LLM_PROVIDER", "openai").lower() == "claude" else "openai"
    send = _send_claude if provider == "claude" else _send_openai
    started = time.perf_counter()
    selected_model, response_text, usage = send(request)
    latency_ms = int((time.perf_counter() - started) * 1000)
    _record(request, provider, selected_model, response_text, usage, latency_ms)

    if not response_text.strip():
        raise LlmResponseError("LLM returned an empty response.")
    parsed = _parse_structured(schema, response_text)
    logger.info("%s call %s finished in %sms", provider, request.step_id, latency_ms)
    return LlmResult(
        text=response_text,
        parsed=parsed,
        model=selected_model,
        provider=provider,
        usage=usage,
        latency_ms=latency_ms,
    )


def _record(
    request: _Request,
    provider: str,
    model: str,
    response_text: str,
    usage: Dict[str, Any],
    latency_ms: int,
) -> None:
    record_llm_call(
        trace_id=request.trace_id,
        step_id=request.step_id,
        provider=provider,
        model=model,
        prompt=request.prompt,
        response_text=response_text,
        usage=usage,
        latency_ms=latency_ms,
        input_refs=request.input_refs,
    )


def _send_openai(request: _Request) -> Tuple[str, str, Dict[str, Any]]:
    client = get_openai_client()
    selected_model = request.model or DEFAULT_OPENAI_MODEL
    messages = request.messages()

    if request.schema is None:
        response = client.responses.create(
            model=selected_model,
            input=messages,
            temperature=request.temperature,
        )
        return selected_model, _extract_response_text(response), _extract_usage(response)

    name = _schema_name(request.schema)
    body = _schema_for(request.schema)
    try:
        response = client.responses.create(
            model=selected_model,
            input=messages,
            temperature=request.temperature,
            text={"format": {"type": "json_schema", "name": name, "schema": body, "strict": True}},
        )
    except TypeError:
        # SDK releases without the Responses API.
        response = client.chat.completions.create(
            model=selected_model,
            messages=messages,
            temperature=request.temperature,
            response_format={
                "type": "json_schema",
                "json_schema": {"name": name, "schema": body, "strict": True},
            },
        )
    return selected_model, _extract_response_text(response), _extract_usage(response)


def _send_claude(request: _Request) -> Tuple[str, str, Dict[str, Any]]:
    if Anthropic is None:
        raise RuntimeError("Claude provider requested but anthropic is not installed.")
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        raise RuntimeError("ANTHROPIC_API_KEY is not set.")

    selected_model = request.model or os.getenv("ANTHROPIC_MODEL", "claude-3-5-sonnet-latest")
    system = request.system_prompt or ""
    if request.schema is not None:
        schema_block = json.dumps(_schema_for(request.schema), ensure_ascii=False)
        system = f"{system}\n\nReturn ONLY valid JSON for this schema:\n{schema_block}"

    response = Anthropic(api_key=api_key).messages.create(
        model=selected_model,
        system=system,
        temperature=request.temperature,
        max_tokens=4096,
        messages=[{"role": "user", "content": request.prompt}],
    )
    blocks = getattr(response, "content", None) or []
    text = "".join(block.text for block in blocks if hasattr(block, "text"))
    return selected_model, text, _extract_usage(response) or {"provider": "claude"}


def _schema_for(schema: Type[ModelT] | Dict[str, Any]) -> Dict[str, Any]:
    if isinstance(schema, dict):
        return schema
    return schema.model_json_schema()


def _schema_name(schema: Type[ModelT] | Dict[str, Any]) -> str:
    if isinstance(schema, dict):
        return str(schema.get("title") or "Schema")
    return schema.__name__


def _extract_response_text(response: Any) -> str:
    if getattr(response, "output_text", None):
        return response.output_text
    output = getattr(response, "output", None)
    if output:
        content = getattr(output[0], "content", None)
        if content and hasattr(content[0], "text"):
            return content[0].text or ""
    choices = getattr(response, "choices", None)
    if choices:
        message = choices[0].message
        return (getattr(message, "content", None) or "") if message else ""
    return ""


def _extract_usage(response: Any) -> Dict[str, Any]:
    usage = getattr(response, "usage", None)
    if isinstance(usage, dict):
        return usage
    if usage is not None and hasattr(usage, "model_dump"):
        return usage.model_dump()
    return {}


def _strip_code_fences(content: str) -> str:
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if len(lines) >= 2:
            return "\n".join(lines[1:-1]).strip()
    return text


def _longest_json_value(text: str) -> Tuple[bool, Any]:
    """Find the longest JSON array or object embedded in surrounding chatter."""
    decoder = json.JSONDecoder()
    found, best, best_span, covered = False, None, 0, -1
    for pos, char in enumerate(text):
        # Values nested inside an already decoded one are always shorter.
        if char not in "[{" or pos < covered:
            continue
        try:
            value, end = decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            continue
        covered = end
        if end - pos > best_span:
            found, best, best_span = True, value, end - pos
    return found, best


def parse_json_payload(content: Optional[str]) -> Any:
    if content is None or not content.strip():
        raise LlmResponseError("LLM returned an empty response.")
    text = _strip_code_fences(content)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    found, value = _longest_json_value(text)
    if not found:
        raise LlmResponseError("Invalid JSON returned by LLM.")
    return value


def _parse_structured(schema: SchemaT, content: str) -> Optional[Any]:
    if schema is None:
        return None
    payload = parse_json_payload(content)
    if isinstance(schema, dict):
        return payload
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise LlmResponseError("LLM response failed schema validation.") from exc


def _fixture_dir() -> str:
    default = os.path.join(
        os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
        "tests",
        "fixtures",
        "llm",
    )
    return os.getenv("LLM_FIXTURE_DIR", default)


def _load_mock_response(prompt: str, schema: SchemaT, mock_key: Optional[str]) -> LlmResult:
    key = mock_key or (_schema_name(schema) if schema is not None else "text")
    path = os.path.join(_fixture_dir(), f"{key}.json")
    if not os.path.exists(path):
        raise RuntimeError(f"LLM fixture not found: {path}")
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    # Free-text fixtures are stored as {"text": ...}.
    if schema is None and isinstance(data, dict) and "text" in data:
        response_text = str(data["text"])
    else:
        response_text = json.dumps(data, ensure_ascii=False)
    return LlmResult(
        text=response_text,
        parsed=_parse_structured(schema, response_text),
        model="mock",
        provider="mock",
        usage={"mock": True, "prompt_chars": len(prompt)},
        latency_ms=0,
    )
