"""
IFRS disclosure generation.

The model answers in prose, one section per standard, so the response is
split into sections line by line instead of being parsed as JSON.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..connections.llm_connector import complete, extract_content
from ..parsing import ParsedRecord
from ..utils.logging import get_logger
from ..utils.settings import config
from ..utils.settings_store import SettingsStore
from .prompt_loader import build_messages, load_prompt, render, serialize_data
from .response_sanitizer import remove_markdown

logger = get_logger()

# "IFRS 15 - Revenue:" or "IAS 1 - Presentation:"
STANDARD_HEADING = re.compile(r"^(?:IFRS|IAS) \d+ - ")


@dataclass(frozen=True)
class DisclosureSection:
    standard: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"standard": self.standard, "content": self.content}


def split_disclosures(text: str) -> List[DisclosureSection]:
    """
    Split disclosure text into sections.

    A heading line starts a new section and becomes its label; the lines
    after it, up to the next heading, become its content (trimmed). Text
    before the first heading is dropped, and so is a heading followed
    directly by another heading or the end of the text. A heading followed
    only by blank lines is kept with empty content.

    Returns:
        Sections in the order they appear; empty when there are no headings.
    """
    sections: List[DisclosureSection] = []
    current_standard = ""
    current_lines: List[str] = []

    def flush():
        if current_standard and current_lines:
            content = "\n".join(current_lines).strip()
            sections.append(DisclosureSection(standard=current_standard, content=content))

    for line in text.splitlines():
        if STANDARD_HEADING.match(line):
            flush()
            current_standard = line.strip()
            current_lines = []
        else:
            current_lines.append(line)
    flush()

    return sections


def build_disclosures_prompt(ifrs_data: ParsedRecord, custom_prompt: Optional[str] = None) -> str:
    """
    Build the user prompt, preferring a saved custom template.

    A custom template receives the data at its ``{ifrs_data}`` placeholder,
    or after the template when it has none.
    """
    data = serialize_data(ifrs_data)
    if custom_prompt:
        if "{ifrs_data}" in custom_prompt:
            return render(custom_prompt, ifrs_data=data)
        return f"{custom_prompt}\n\n{data}"
    return render(load_prompt("disclosures")["user_prompt"], ifrs_data=data)


async def generate_disclosures(
    ifrs_data: ParsedRecord,
    context: Dict[str, Any],
    store: Optional[SettingsStore] = None,
) -> List[DisclosureSection]:
    """
    Generate disclosure sections for converted IFRS figures.

    Raises:
        TransportError: If the endpoint returns a non-success status.
    """
    execution_id = context["execution_id"]
    store = store or SettingsStore()
    custom_prompt = store.get_custom_disclosures_prompt()

    logger.info(
        "disclosures.started",
        execution_id=execution_id,
        cells=len(ifrs_data),
        custom_prompt=bool(custom_prompt),
    )

    messages = build_messages(
        load_prompt("disclosures")["system_prompt"],
        build_disclosures_prompt(ifrs_data, custom_prompt),
    )

    try:
        response = await complete(
            messages,
            context,
            llm_params={
                "temperature": config.llm.disclosures.temperature,
                "max_tokens": config.llm.disclosures.max_tokens,
            },
        )
        sections = split_disclosures(remove_markdown(extract_content(response)))
    except Exception as e:
        logger.error(
            "disclosures.failed",
            execution_id=execution_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    logger.info(
        "disclosures.completed",
        execution_id=execution_id,
        sections=len(sections),
        standards=[section.standard for section in sections],
    )
    return sections
