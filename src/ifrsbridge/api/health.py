"""
Financial health analysis over the combined IFRS statements.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from ..connections.llm_connector import complete, extract_content
from ..errors import EmptyFinancialDataError, MalformedStatementError, PayloadShapeError
from ..parsing import ParsedRecord
from ..utils.logging import get_logger
from ..utils.settings import config
from .prompt_loader import build_messages, load_prompt, render, serialize_data
from .response_sanitizer import remove_markdown

logger = get_logger()


@dataclass
class HealthAnalysis:
    analysis: str = ""
    ratios: Dict[str, float] = field(default_factory=dict)
    strengths: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis": self.analysis,
            "ratios": dict(self.ratios),
            "strengths": list(self.strengths),
            "concerns": list(self.concerns),
            "recommendations": list(self.recommendations),
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def validate_analysis_data(data: Any) -> HealthAnalysis:
    """
    Coerce a raw analysis payload into a HealthAnalysis.

    Fields of the wrong type fall back to their empty default, ratios keep
    only numeric values and lists keep only strings.

    Raises:
        PayloadShapeError: Only when ``data`` is not a JSON object.
    """
    if not isinstance(data, dict):
        raise PayloadShapeError("Invalid analysis data structure")

    analysis = data.get("analysis")
    ratios = data.get("ratios")
    return HealthAnalysis(
        analysis=analysis if isinstance(analysis, str) else "",
        ratios=(
            {str(name): value for name, value in ratios.items() if _is_number(value)}
            if isinstance(ratios, dict)
            else {}
        ),
        strengths=_string_list(data.get("strengths")),
        concerns=_string_list(data.get("concerns")),
        recommendations=_string_list(data.get("recommendations")),
    )


def merge_statement_data(statements: Sequence[Any]) -> ParsedRecord:
    """
    Merge the IFRS data of several statements into one record.

    Statements are expected to use distinct keys; on a collision the later
    statement wins.

    Raises:
        MalformedStatementError: If a statement has no IFRS data.
    """
    combined: ParsedRecord = {}
    for statement in statements:
        ifrs_data = getattr(statement, "ifrs_data", None)
        if not isinstance(ifrs_data, dict):
            logger.error("health.malformed_statement", statement=statement.name)
            raise MalformedStatementError(statement.name)
        combined.update(ifrs_data)
    return combined


async def analyze_financial_health(
    combined_data: ParsedRecord, locale: str, context: Dict[str, Any]
) -> HealthAnalysis:
    """
    Ask the model for a health assessment of the combined data.

    Args:
        combined_data: Output of ``merge_statement_data``.
        locale: Language code the narrative should be written in.
        context: Runtime context from ``build_context``.

    Raises:
        EmptyFinancialDataError: If there is no data; no call is made.
        TransportError: If the endpoint returns a non-success status.
        PayloadShapeError: If the output is not a JSON object.
    """
    if not combined_data:
        raise EmptyFinancialDataError("No valid IFRS data found in statements")

    execution_id = context["execution_id"]
    logger.info(
        "health.started", execution_id=execution_id, cells=len(combined_data), locale=locale
    )

    prompt = load_prompt("health")
    messages = build_messages(
        prompt["system_prompt"],
        render(prompt["user_prompt"], ifrs_data=serialize_data(combined_data), locale=locale),
    )

    try:
        response = await complete(
            messages,
            context,
            llm_params={
                "temperature": config.llm.analysis.temperature,
                "max_tokens": config.llm.analysis.max_tokens,
            },
        )
        content = remove_markdown(extract_content(response))
        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            raise PayloadShapeError(f"Analysis response is not valid JSON: {e}") from e
        result = validate_analysis_data(raw)
    except Exception as e:
        logger.error(
            "health.failed",
            execution_id=execution_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    logger.info(
        "health.completed",
        execution_id=execution_id,
        ratios=len(result.ratios),
        strengths=len(result.strengths),
        concerns=len(result.concerns),
    )
    return result
