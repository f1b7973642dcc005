"""
Persisted key/value store for user settings.

Holds the API credential and the optional custom disclosure prompt in a small
JSON file. Missing keys (or a missing file) read back as an empty string.
"""

import json
import os
import tempfile
from typing import Dict, Optional

from .logging import get_logger
from .settings import config

API_KEY_SETTING = "openai_api_key"
DISCLOSURES_PROMPT_SETTING = "custom_disclosures_prompt"

logger = get_logger()


class SettingsStore:
    """JSON-file backed key/value store."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or config.settings_store_path

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("settings_store.unreadable", path=self.path, error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str:
        """Return the stored value for ``key`` or an empty string."""
        value = self._read().get(key)
        return value if isinstance(value, str) else ""

    def set(self, key: str, value: str) -> None:
        """Persist ``value`` under ``key``; an empty value removes the key."""
        data = self._read()
        if value:
            data[key] = value
        else:
            data.pop(key, None)

        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        # Write to a sibling temp file then swap it in
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)
        logger.info("settings_store.saved", key=key)

    def get_api_key(self) -> str:
        return self.get(API_KEY_SETTING)

    def set_api_key(self, api_key: str) -> None:
        self.set(API_KEY_SETTING, api_key)

    def get_custom_disclosures_prompt(self) -> str:
        return self.get(DISCLOSURES_PROMPT_SETTING)

    def set_custom_disclosures_prompt(self, prompt: str) -> None:
        self.set(DISCLOSURES_PROMPT_SETTING, prompt)
