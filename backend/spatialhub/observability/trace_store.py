"""In-memory record of model calls, grouped by trace id.

Only the prompt size is kept; uploaded CSV text never lands in the store.
The oldest trace is evicted once ``MAX_TRACES`` traces are held.
"""

from __future__ import annotations

import json
import os
import threading
from collections import OrderedDict
from typing import Any, Dict, List, Optional

MAX_TRACES = 200

_LOCK = threading.Lock()
_TRACES: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()


def record_llm_call(
    trace_id: str,
    step_id: str,
    provider: str,
    model: str,
    prompt: str,
    response_text: str,
    usage: Dict[str, Any],
    latency_ms: int,
    input_refs: Optional[Dict[str, Any]] = None,
) -> None:
    step = {
        "step_id": step_id,
        "provider": provider,
        "model": model,
        "prompt_chars": len(prompt or ""),
        "response_chars": len(response_text or ""),
        "response_text": response_text,
        "usage": usage,
        "latency_ms": latency_ms,
        "input_refs": dict(input_refs or {}),
    }
    with _LOCK:
        steps = _TRACES.get(trace_id)
        if steps is None:
            while len(_TRACES) >= MAX_TRACES:
                _TRACES.popitem(last=False)
            steps = _TRACES[trace_id] = []
        steps.append(step)


def get_trace_steps(trace_id: str) -> List[Dict[str, Any]]:
    with _LOCK:
        return [dict(step) for step in _TRACES.get(trace_id, [])]


def trace_ids() -> List[str]:
    with _LOCK:
        return list(_TRACES)


def clear_traces() -> None:
    with _LOCK:
        _TRACES.clear()


def export_trace(trace_id: str, path: str) -> None:
    steps = get_trace_steps(trace_id)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        json.dump({"trace_id": trace_id, "steps": steps}, handle, ensure_ascii=False, indent=2)
