# Insights: debounced strategic report generation
from spatialhub.insights.debounce import DebounceTimer, ManualScheduler, ThreadingScheduler
from spatialhub.insights.summarizer import InsightState, InsightSummarizer

__all__ = [
    "DebounceTimer",
    "InsightState",
    "InsightSummarizer",
    "ManualScheduler",
    "ThreadingScheduler",
]
