"""
Statement ingestion: file parsing and the row/column view.
"""

from .file_parsers import (
    ParsedRecord,
    UploadedFile,
    flatten_matrix,
    parse_csv,
    parse_file,
    parse_pdf,
    parse_xlsx,
)
from .matrix import Grid, build_grid, reshape, split_key, update_cell

__all__ = [
    # Parsing
    "ParsedRecord",
    "UploadedFile",
    "flatten_matrix",
    "parse_csv",
    "parse_file",
    "parse_pdf",
    "parse_xlsx",
    # Matrix view
    "Grid",
    "build_grid",
    "reshape",
    "split_key",
    "update_cell",
]
