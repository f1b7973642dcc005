"""
Connections module exports.
"""

from .llm_connector import build_context, complete, extract_content

__all__ = [
    "build_context",
    "complete",
    "extract_content",
]
