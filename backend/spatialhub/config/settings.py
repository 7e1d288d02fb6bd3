from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_BOUNDARY_URL = (
    "https://raw.githubusercontent.com/g0v/twgeojson/master/json/townships_mainland.json"
)
DEFAULT_TILE_URL = "https://{s}.basemaps.cartocdn.com/light_all/{z}/{x}/{y}{r}.png"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


class HubConfig:
    """Runtime settings for the dashboard service, read from the environment."""

    def __init__(self) -> None:
        self.llm_disabled = _env_bool("LLM_DISABLED", False)
        self.insight_model = os.getenv("INSIGHT_MODEL") or None
        self.insight_debounce_seconds = _env_float("INSIGHT_DEBOUNCE_SECONDS", 1.5)
        self.insight_sample_limit = _env_int("INSIGHT_SAMPLE_LIMIT", 15)
        self.ingest_local_fallback = _env_bool("INGEST_LOCAL_FALLBACK", True)
        self.boundary_url = os.getenv("BOUNDARY_GEOJSON_URL", DEFAULT_BOUNDARY_URL)
        self.boundary_timeout = _env_float("BOUNDARY_TIMEOUT", 10.0)
        self.boundary_retry_seconds = _env_float("BOUNDARY_RETRY_SECONDS", 300.0)
        self.tile_url = os.getenv("MAP_TILE_URL", DEFAULT_TILE_URL)
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = _env_int("PORT", 5000)
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self._validate()

    def _validate(self) -> None:
        if self.insight_debounce_seconds < 0:
            logger.warning(
                "INSIGHT_DEBOUNCE_SECONDS must be >= 0, got %s; using 1.5",
                self.insight_debounce_seconds,
            )
            self.insight_debounce_seconds = 1.5
        if self.insight_sample_limit <= 0:
            logger.warning(
                "INSIGHT_SAMPLE_LIMIT must be positive, got %s; using 15",
                self.insight_sample_limit,
            )
            self.insight_sample_limit = 15

    @property
    def llm_configured(self) -> bool:
        if self.llm_disabled:
            return True
        provider = os.getenv("LLM_PROVIDER", "openai").lower()
        if provider == "claude":
            return bool(os.getenv("ANTHROPIC_API_KEY"))
        return bool(os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY_FILE"))


hub_config = HubConfig()
