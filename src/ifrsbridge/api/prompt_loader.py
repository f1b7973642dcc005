"""
Prompt templates for the API operations.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml

PROMPTS_DIR = Path(__file__).parent / "prompts"


@lru_cache(maxsize=None)
def load_prompt(name: str) -> Dict[str, Any]:
    """
    Load a prompt definition from ``prompts/<name>.yaml``.

    Raises:
        FileNotFoundError: If no such prompt exists.
    """
    path = PROMPTS_DIR / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def serialize_data(data: Dict[str, Any]) -> str:
    """Pretty-print financial data for embedding in a prompt."""
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def render(template: str, **values: str) -> str:
    """
    Fill ``{name}`` placeholders by literal replacement.

    Other braces (such as JSON examples in the template) are left alone.
    """
    for name, value in values.items():
        template = template.replace("{" + name + "}", value)
    return template


def build_messages(system_prompt: str, user_prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]
