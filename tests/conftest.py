"""
Shared pytest fixtures and configuration for all tests.

Every test runs with SSL verification off, a temporary settings store and
a fresh LLM client cache.
"""

import json

import pytest

from ifrsbridge.connections import llm_connector
from ifrsbridge.utils.settings import config
from ifrsbridge.utils.settings_store import SettingsStore


@pytest.fixture(autouse=True)
def reset_config(tmp_path):
    """
    Save and restore config values for test isolation.
    """
    original_values = {
        "ssl_verify": config.ssl_verify,
        "ssl_cert_path": config.ssl_cert_path,
        "settings_store_path": config.settings_store_path,
        "log_level": config.log_level,
        "environment": config.environment,
        "progress_interval": config.progress_interval,
    }

    config.ssl_verify = False
    config.ssl_cert_path = ""
    config.settings_store_path = str(tmp_path / "settings.json")
    config.log_level = "INFO"
    config.environment = "test"
    config.progress_interval = 0.01

    yield

    for key, value in original_values.items():
        setattr(config, key, value)


@pytest.fixture(autouse=True)
def reset_llm_cache():
    """Clear the client cache around each test."""
    llm_connector._async_client_cache.clear()
    yield
    llm_connector._async_client_cache.clear()


@pytest.fixture
def settings_store(tmp_path):
    """Settings store with a saved API key."""
    store = SettingsStore(str(tmp_path / "store.json"))
    store.set_api_key("test-api-key")
    return store


@pytest.fixture
def execution_id():
    return "test-exec-1234-5678-9abc-def012345678"


@pytest.fixture
def mock_context(execution_id):
    """Runtime context as produced by build_context."""
    return {
        "execution_id": execution_id,
        "auth_config": {"token": "test-api-key"},
        "ssl_config": {"verify": False, "cert_path": None},
    }


@pytest.fixture
def gaap_record():
    """Parsed balance sheet excerpt."""
    return {
        "Item_0": "Revenue",
        "Amount_0": 1000,
        "Item_1": "Cost of sales",
        "Amount_1": -400,
        "Item_2": "Inventory (LIFO)",
        "Amount_2": 250,
    }


def completion(content: str) -> dict:
    """Chat-completion response dict carrying ``content``."""
    return {
        "id": "chatcmpl-123",
        "choices": [
            {
                "message": {"role": "assistant", "content": content},
                "index": 0,
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 100, "completion_tokens": 50, "total_tokens": 150},
        "metrics": {"total_tokens": 150, "total_cost": 0.0001, "response_time": 0.5},
    }


@pytest.fixture
def make_completion():
    """Factory for chat-completion response dicts."""
    return completion


@pytest.fixture
def conversion_response():
    return completion(
        json.dumps(
            {
                "ifrsData": {"Item_0": "Revenue", "Amount_0": 1000, "Item_2": "Inventory (FIFO)"},
                "explanations": ["LIFO is not permitted under IAS 2."],
                "recommendations": ["Remeasure inventory using FIFO."],
            }
        )
    )


@pytest.fixture
def analysis_response():
    return completion(
        "```json\n"
        + json.dumps(
            {
                "analysis": "Solid liquidity with thin margins.",
                "ratios": {"Current ratio": 1.8, "Gross margin": 0.6},
                "strengths": ["Strong revenue"],
                "concerns": ["High cost of sales"],
                "recommendations": ["Review supplier contracts"],
            }
        )
        + "\n```"
    )
