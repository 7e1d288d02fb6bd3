from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

from openai import OpenAI

logger = logging.getLogger(__name__)

DEFAULT_OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

_CLIENTS: Dict[Tuple[str, Optional[str]], OpenAI] = {}
_CLIENTS_LOCK = threading.Lock()


def _key_from_file(path_str: Optional[str]) -> Optional[str]:
    if not path_str:
        return None
    path = Path(path_str)
    if not path.is_file():
        logger.warning("OPENAI_API_KEY_FILE %s does not exist", path_str)
        return None
    return path.read_text(encoding="utf-8").strip() or None


def _timeout() -> float:
    raw = os.getenv("OPENAI_TIMEOUT", "60")
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid OPENAI_TIMEOUT=%r", raw)
        return 60.0


def get_openai_client() -> OpenAI:
    """Return a shared client for the configured key and endpoint."""
    api_key = os.getenv("OPENAI_API_KEY") or _key_from_file(os.getenv("OPENAI_API_KEY_FILE"))
    if not api_key:
        raise RuntimeError(
            "OPENAI_API_KEY is not set. Set OPENAI_API_KEY or OPENAI_API_KEY_FILE."
        )
    base_url = os.getenv("OPENAI_BASE_URL") or None
    with _CLIENTS_LOCK:
        client = _CLIENTS.get((api_key, base_url))
        if client is None:
            client = OpenAI(api_key=api_key, base_url=base_url, timeout=_timeout(), max_retries=2)
            _CLIENTS[(api_key, base_url)] = client
        return client
