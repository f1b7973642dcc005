"""
Configuration settings for IFRS Bridge.

All settings are read once from environment variables (optionally via a .env
file) and exposed through a single shared ``config`` instance.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Optional

import dotenv

dotenv.load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LLMOperationConfig:
    """Sampling parameters for one API operation."""

    temperature: float
    max_tokens: int


@dataclass
class LLMConfig:
    """Chat-completion endpoint and per-operation parameters."""

    model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    base_url: str = field(
        default_factory=lambda: os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
    )
    timeout: float = field(default_factory=lambda: float(os.getenv("LLM_TIMEOUT", "180")))
    cost_per_1k_input: float = field(
        default_factory=lambda: float(os.getenv("LLM_COST_INPUT", "0.00015"))
    )
    cost_per_1k_output: float = field(
        default_factory=lambda: float(os.getenv("LLM_COST_OUTPUT", "0.0006"))
    )
    # Conversions favour determinism over creativity
    conversion: LLMOperationConfig = field(
        default_factory=lambda: LLMOperationConfig(
            temperature=float(os.getenv("CONVERSION_TEMPERATURE", "0.2")),
            max_tokens=int(os.getenv("CONVERSION_MAX_TOKENS", "3000")),
        )
    )
    disclosures: LLMOperationConfig = field(
        default_factory=lambda: LLMOperationConfig(
            temperature=float(os.getenv("DISCLOSURES_TEMPERATURE", "0.5")),
            max_tokens=int(os.getenv("DISCLOSURES_MAX_TOKENS", "3000")),
        )
    )
    analysis: LLMOperationConfig = field(
        default_factory=lambda: LLMOperationConfig(
            temperature=float(os.getenv("ANALYSIS_TEMPERATURE", "0.5")),
            max_tokens=int(os.getenv("ANALYSIS_MAX_TOKENS", "3000")),
        )
    )


class Config:
    """
    Singleton holding every runtime setting.

    ``Config()`` always returns the module-level instance so tests can patch
    attributes on ``config`` and have every caller observe the change.
    """

    _instance: Optional["Config"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._initialized = True

        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.environment = os.getenv("ENVIRONMENT", "local")

        # SSL
        self.ssl_verify = _env_bool("SSL_VERIFY", "true")
        self.ssl_cert_path = os.getenv("SSL_CERT_PATH", "")

        # Key/value store holding the API credential and custom prompts
        self.settings_store_path = os.path.expanduser(
            os.getenv("SETTINGS_STORE_PATH", "~/.ifrsbridge/settings.json")
        )

        # Simulated progress for the health analysis
        self.progress_interval = float(os.getenv("PROGRESS_INTERVAL", "0.5"))
        self.progress_step = int(os.getenv("PROGRESS_STEP", "10"))
        self.progress_cap = int(os.getenv("PROGRESS_CAP", "90"))

        self.llm = LLMConfig()

    def get(self, name: str, default: Any = None) -> Any:
        """Return a setting by name, or ``default`` when it does not exist."""
        return getattr(self, name, default)


config = Config()
