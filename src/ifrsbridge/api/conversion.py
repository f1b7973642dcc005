"""
GAAP to IFRS conversion.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..connections.llm_connector import complete, extract_content
from ..errors import PayloadShapeError
from ..parsing import ParsedRecord
from ..utils.logging import get_logger
from ..utils.settings import config
from .prompt_loader import build_messages, load_prompt, render, serialize_data
from .response_sanitizer import remove_markdown

logger = get_logger()


@dataclass(frozen=True)
class ConversionResult:
    """Converted figures with the model's explanations and recommendations."""

    ifrs_data: ParsedRecord
    explanations: Tuple[str, ...]
    recommendations: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ifrsData": dict(self.ifrs_data),
            "explanations": list(self.explanations),
            "recommendations": list(self.recommendations),
        }


def _string_list(payload: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = payload.get(key)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise PayloadShapeError(f"Conversion response field '{key}' must be a list of strings")
    return tuple(value)


def parse_conversion_response(content: str) -> ConversionResult:
    """
    Parse the model's conversion output.

    There is no tolerant fallback: invalid JSON or a missing or mistyped
    field rejects the whole response.

    Raises:
        PayloadShapeError: If the content is not a valid conversion payload.
    """
    try:
        payload = json.loads(remove_markdown(content))
    except json.JSONDecodeError as e:
        raise PayloadShapeError(f"Conversion response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise PayloadShapeError(
            f"Conversion response must be a JSON object, got {type(payload).__name__}"
        )
    ifrs_data = payload.get("ifrsData")
    if not isinstance(ifrs_data, dict):
        raise PayloadShapeError("Conversion response field 'ifrsData' must be an object")

    return ConversionResult(
        ifrs_data=ifrs_data,
        explanations=_string_list(payload, "explanations"),
        recommendations=_string_list(payload, "recommendations"),
    )


async def convert_to_ifrs(gaap_data: ParsedRecord, context: Dict[str, Any]) -> ConversionResult:
    """
    Convert a GAAP statement to IFRS with one chat-completion call.

    Args:
        gaap_data: Statement record to convert.
        context: Runtime context from ``build_context``.

    Raises:
        TransportError: If the endpoint returns a non-success status.
        PayloadShapeError: If the response cannot be parsed.
    """
    execution_id = context["execution_id"]
    logger.info("conversion.started", execution_id=execution_id, cells=len(gaap_data))

    prompt = load_prompt("conversion")
    messages = build_messages(
        prompt["system_prompt"],
        render(prompt["user_prompt"], gaap_data=serialize_data(gaap_data)),
    )

    try:
        response = await complete(
            messages,
            context,
            llm_params={
                "temperature": config.llm.conversion.temperature,
                "max_tokens": config.llm.conversion.max_tokens,
            },
        )
        result = parse_conversion_response(extract_content(response))
    except Exception as e:
        logger.error(
            "conversion.failed",
            execution_id=execution_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    logger.info(
        "conversion.completed",
        execution_id=execution_id,
        ifrs_cells=len(result.ifrs_data),
        explanations=len(result.explanations),
        recommendations=len(result.recommendations),
    )
    return result
