"""Read-only access to the dashboard's JSON configuration document."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import structlog


logger = structlog.get_logger(__name__)


DEFAULT_DOCUMENT: dict[str, Any] = {
    "settings": {},
    "categories": [],
    "links": [],
    "widgets": [],
}


class JsonConfigStore:
    """Loads a fresh snapshot of the document on every call.

    The document is owned and rewritten by the admin panel, so nothing is
    cached here. A missing or unreadable file yields the empty default
    document rather than an error.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Config document not found, using defaults", path=str(self.path))
            return copy.deepcopy(DEFAULT_DOCUMENT)
        except OSError as e:
            logger.error("Cannot read config document", path=str(self.path), error=str(e))
            return copy.deepcopy(DEFAULT_DOCUMENT)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Config document is not valid JSON", path=str(self.path), error=str(e))
            return copy.deepcopy(DEFAULT_DOCUMENT)

        if not isinstance(data, dict):
            logger.error("Config document is not a JSON object", path=str(self.path))
            return copy.deepcopy(DEFAULT_DOCUMENT)
        return data

    def __call__(self) -> dict[str, Any]:
        return self.load()
