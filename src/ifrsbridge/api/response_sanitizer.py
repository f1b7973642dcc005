"""
Removal of markdown code fences around model output.
"""

import re
from typing import Any

_OPENING_FENCE = re.compile(r"^```(?:[A-Za-z0-9_+-]*[ \t]*\r?\n)?")
_CLOSING_FENCE = re.compile(r"\r?\n?[ \t]*```$")


def _strip_fences(text: str) -> str:
    text = text.strip()
    while True:
        stripped = _OPENING_FENCE.sub("", text, count=1)
        stripped = _CLOSING_FENCE.sub("", stripped, count=1).strip()
        if stripped == text:
            return text
        text = stripped


def remove_markdown(payload: Any) -> Any:
    """
    Strip code-fence wrapping from a model response.

    Strings lose a leading ```` ``` ```` line (with any language tag) and a
    trailing ```` ``` ````, along with outer whitespace. Dicts and lists are
    cleaned value by value. Other values are returned unchanged. Applying it
    twice gives the same result as applying it once.
    """
    if isinstance(payload, str):
        return _strip_fences(payload)
    if isinstance(payload, dict):
        return {key: remove_markdown(value) for key, value in payload.items()}
    if isinstance(payload, list):
        return [remove_markdown(item) for item in payload]
    return payload
