from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional

from spatialhub.ai.llm_client import LlmResponseError, LlmResult, call_llm
from spatialhub.ai.prompts import INSIGHT_SYSTEM_PROMPT, build_insight_prompt
from spatialhub.config.settings import hub_config
from spatialhub.dashboard.store import DatasetStore
from spatialhub.insights.debounce import DebounceTimer, Scheduler
from spatialhub.shared.constants import INSIGHT_FALLBACK_MESSAGE
from spatialhub.shared.models import LayerType

logger = logging.getLogger(__name__)

LlmCall = Callable[..., LlmResult]
Runner = Callable[[Callable[[], None]], None]


class InsightState(str, Enum):
    IDLE = "IDLE"
    DEBOUNCING = "DEBOUNCING"
    REQUESTING = "REQUESTING"
    READY = "READY"
    FAILED = "FAILED"


def _run_inline(job: Callable[[], None]) -> None:
    job()


class InsightSummarizer:
    """Debounced strategic-report generation over the two point layers.

    Every store mutation re-arms the debounce while both layers hold data.
    When the quiet period elapses the first ``sample_limit`` items of each
    layer are sent to the model. Requests are numbered; a completion that is
    not the latest issued request is discarded.
    """

    def __init__(
        self,
        store: DatasetStore,
        llm: Optional[LlmCall] = None,
        scheduler: Optional[Scheduler] = None,
        delay: Optional[float] = None,
        sample_limit: Optional[int] = None,
        runner: Optional[Runner] = None,
        on_request_start: Optional[Callable[[], None]] = None,
        model: Optional[str] = None,
        lock: Optional[threading.RLock] = None,
    ) -> None:
        self.store = store
        self.llm = llm or call_llm
        self.sample_limit = sample_limit or hub_config.insight_sample_limit
        self.runner = runner or _run_inline
        self.on_request_start = on_request_start
        self.model = model or hub_config.insight_model
        self._lock = lock or threading.RLock()
        delay = hub_config.insight_debounce_seconds if delay is None else delay
        self._timer = DebounceTimer(delay, self._on_deadline, scheduler)

        self.state = InsightState.IDLE
        self.report = ""
        self.loading = False
        self.last_error: Optional[str] = None
        self._sequence = 0

        store.subscribe(self.notify_mutation)

    @property
    def sequence(self) -> int:
        return self._sequence

    def notify_mutation(self, kind: Optional[LayerType] = None) -> None:
        with self._lock:
            if self.store.both_populated():
                self._timer.arm()
                self.state = InsightState.DEBOUNCING
                return
            self._timer.cancel()
            if self.state == InsightState.DEBOUNCING:
                self.state = InsightState.IDLE

    def clear_report(self) -> None:
        """Drop the stored report and invalidate any request still in flight."""
        with self._lock:
            self.report = ""
            self.last_error = None
            if self.loading:
                self._sequence += 1
                self.loading = False
            if self.state in (InsightState.REQUESTING, InsightState.READY, InsightState.FAILED):
                self.state = InsightState.IDLE

    def generate_now(self) -> bool:
        self._timer.cancel()
        return self._on_deadline()

    def _on_deadline(self, generation: Optional[int] = None) -> bool:
        with self._lock:
            if generation is not None and not self._timer.is_current(generation):
                logger.info("Debounce deadline %s was re-armed before it ran; skipping", generation)
                return False
            if not self.store.both_populated():
                logger.info("Insight deadline reached with an empty layer; not requesting")
                if self.state == InsightState.DEBOUNCING:
                    self.state = InsightState.IDLE
                return False
            self._sequence += 1
            sequence = self._sequence
            self.state = InsightState.REQUESTING
            self.loading = True
            resources = list(self.store.resources[: self.sample_limit])
            demands = list(self.store.demands[: self.sample_limit])
            if self.on_request_start is not None:
                self.on_request_start()
        logger.info(
            "Requesting insight report #%s (%s resources, %s demands)",
            sequence,
            len(resources),
            len(demands),
        )
        self.runner(lambda: self._request(sequence, resources, demands))
        return True

    def _request(self, sequence: int, resources: list, demands: list) -> None:
        try:
            result = self.llm(
                prompt=build_insight_prompt(resources, demands),
                system_prompt=INSIGHT_SYSTEM_PROMPT,
                model=self.model,
                temperature=0.4,
                step_id="insight_report",
                input_refs={"resources": len(resources), "demands": len(demands), "sequence": sequence},
                mock_key="insight_report",
            )
            text = (result.text or "").strip()
            if not text:
                raise LlmResponseError("LLM returned an empty response.")
        except Exception as exc:
            logger.error("Insight generation failed: %s", exc)
            self._complete(sequence, INSIGHT_FALLBACK_MESSAGE, error=str(exc))
            return
        self._complete(sequence, text)

    def _complete(self, sequence: int, text: str, error: Optional[str] = None) -> None:
        with self._lock:
            if sequence != self._sequence:
                logger.info("Discarding stale insight report #%s (latest is #%s)", sequence, self._sequence)
                return
            self.report = text
            self.last_error = error
            self.loading = False
            self.state = InsightState.FAILED if error else InsightState.READY
            if self._timer.pending:
                # A newer mutation is already waiting out its quiet period.
                self.state = InsightState.DEBOUNCING
