"""
API operations: GAAP to IFRS conversion, disclosures and health analysis.
"""

from .conversion import ConversionResult, convert_to_ifrs, parse_conversion_response
from .disclosures import DisclosureSection, generate_disclosures, split_disclosures
from .health import (
    HealthAnalysis,
    analyze_financial_health,
    merge_statement_data,
    validate_analysis_data,
)
from .response_sanitizer import remove_markdown

__all__ = [
    # Conversion
    "ConversionResult",
    "convert_to_ifrs",
    "parse_conversion_response",
    # Disclosures
    "DisclosureSection",
    "generate_disclosures",
    "split_disclosures",
    # Health analysis
    "HealthAnalysis",
    "analyze_financial_health",
    "merge_statement_data",
    "validate_analysis_data",
    # Sanitizer
    "remove_markdown",
]
