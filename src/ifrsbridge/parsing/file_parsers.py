"""
File parsers for uploaded financial statements.

Every parser turns one uploaded file into a ParsedRecord: a flat mapping of
``"<column>_<row>"`` keys to scalar values, with rows numbered from 0 for the
first data row after the header.
"""

import csv
import datetime
import io
import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from openpyxl import load_workbook

from ..errors import FileParseError, FormatNotImplementedError, UnsupportedFileTypeError
from ..utils.logging import get_logger

Scalar = Union[str, int, float, bool, None]
ParsedRecord = Dict[str, Scalar]

logger = get_logger()

# Tried in order when decoding CSV bytes
CSV_ENCODINGS = ["utf-8-sig", "cp1252", "latin-1"]

_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


@dataclass
class UploadedFile:
    """An uploaded file: its original name and raw bytes."""

    name: str
    content: bytes

    @property
    def extension(self) -> str:
        if "." not in self.name:
            return ""
        return self.name.rsplit(".", 1)[-1].lower()


def infer_scalar(raw: str) -> Scalar:
    """
    Convert a CSV cell to its natural scalar type.

    Integers and decimals become numbers, even with surrounding whitespace.
    ``true``/``false`` become booleans and an empty cell becomes None.
    Anything else stays text, untrimmed.
    """
    if raw == "":
        return None
    number = raw.strip()
    if _INT_RE.match(number):
        return int(number)
    if _FLOAT_RE.match(number):
        return float(number)
    if raw in ("true", "TRUE", "True"):
        return True
    if raw in ("false", "FALSE", "False"):
        return False
    return raw


def _decode_csv(file: UploadedFile) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            text = file.content.decode(encoding)
            logger.debug("parser.csv_decoded", file_name=file.name, encoding=encoding)
            return text
        except UnicodeDecodeError:
            continue
    raise ValueError("could not decode file with any supported encoding")


def parse_csv(file: UploadedFile) -> ParsedRecord:
    """
    Parse a CSV file whose first line holds the column names.

    Columns with a blank name are dropped.

    Raises:
        FileParseError: If the file cannot be decoded or read as CSV.
    """
    try:
        reader = csv.DictReader(io.StringIO(_decode_csv(file), newline=""))
        data: ParsedRecord = {}
        row_count = 0
        for row_index, row in enumerate(reader):
            row_count += 1
            for column, value in row.items():
                # Overflow cells are collected under a None key
                if column is None or column.strip() == "":
                    continue
                data[f"{column}_{row_index}"] = infer_scalar(value) if value is not None else None
    except (csv.Error, ValueError) as e:
        logger.error("parser.csv_failed", file_name=file.name, error=str(e))
        raise FileParseError(file.name, f"Failed to parse CSV: {e}") from e

    logger.info("parser.csv_complete", file_name=file.name, row_count=row_count)
    return data


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)


def _serialize_cell(cell: Any, cached_value: Any) -> Scalar:
    """Return a scalar for plain cells and a JSON string for everything else."""
    value = cell.value
    if cell.data_type == "f":
        formula = getattr(value, "text", value)
        return json.dumps(
            {"formula": str(formula).lstrip("="), "result": cached_value},
            default=_json_default,
        )
    if cell.data_type == "e":
        return json.dumps({"error": value})
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, list):
        # Rich text: a sequence of plain strings and formatted text blocks
        parts = [{"text": getattr(part, "text", str(part))} for part in value]
        return json.dumps({"richText": parts})
    return json.dumps(value, default=_json_default)


def parse_xlsx(file: UploadedFile) -> ParsedRecord:
    """
    Parse the first worksheet of an XLSX workbook.

    The first row supplies column names; a blank header cell is named
    ``Column<n>``. Sheet row 2 becomes row index 0. Empty cells are skipped.
    Formula, error, rich text and date cells are stored as JSON strings.

    Raises:
        FileParseError: If the workbook cannot be read.
    """
    try:
        workbook = load_workbook(io.BytesIO(file.content), rich_text=True)
        # Second load gives the cached results of formula cells
        values_workbook = load_workbook(io.BytesIO(file.content), data_only=True)
        worksheet = workbook.worksheets[0]
        values_sheet = values_workbook.worksheets[0]

        headers: Dict[int, str] = {}
        for cell in worksheet[1]:
            header = cell.value
            if header in (None, ""):
                header = f"Column{cell.column}"
            headers[cell.column] = str(header)

        data: ParsedRecord = {}
        for row in worksheet.iter_rows(min_row=2):
            for cell in row:
                if cell.value is None:
                    continue
                column_name = headers.get(cell.column, f"Column{cell.column}")
                cached = values_sheet.cell(row=cell.row, column=cell.column).value
                data[f"{column_name}_{cell.row - 2}"] = _serialize_cell(cell, cached)

        row_count = worksheet.max_row
        workbook.close()
        values_workbook.close()
    except Exception as e:
        logger.error("parser.xlsx_failed", file_name=file.name, error=str(e))
        raise FileParseError(file.name, f"Failed to parse XLSX: {e}") from e

    logger.info("parser.xlsx_complete", file_name=file.name, row_count=row_count)
    return data


def parse_pdf(file: UploadedFile) -> ParsedRecord:
    """PDF statements are recognised but not supported."""
    logger.warning("parser.pdf_not_implemented", file_name=file.name)
    raise FormatNotImplementedError(file.name, "PDF")


def flatten_matrix(matrix: List[List[Scalar]]) -> ParsedRecord:
    """
    Flatten a header-first table into a ParsedRecord.

    ``matrix[0]`` holds the column names; ``matrix[n]`` becomes row index
    ``n - 1``. Short rows yield None for their missing cells.
    """
    if not matrix:
        return {}
    headers = matrix[0]
    flat: ParsedRecord = {}
    for row_index in range(1, len(matrix)):
        row = matrix[row_index]
        for col_index, header in enumerate(headers):
            flat[f"{header}_{row_index - 1}"] = row[col_index] if col_index < len(row) else None
    return flat


def _is_matrix(parsed: Any) -> bool:
    return isinstance(parsed, list) and all(isinstance(row, list) for row in parsed)


PARSERS: Dict[str, Callable[[UploadedFile], Any]] = {
    "csv": parse_csv,
    "xlsx": parse_xlsx,
    "pdf": parse_pdf,
}


def parse_file(file: UploadedFile, parsers: Optional[Dict[str, Callable]] = None) -> ParsedRecord:
    """
    Parse an uploaded file, choosing the parser from its extension.

    Whatever the parser returns, the result is always a ParsedRecord: a
    header-first matrix is flattened here.

    Raises:
        UnsupportedFileTypeError: For extensions without a parser.
        FormatNotImplementedError: For PDF files.
        FileParseError: If the parser fails.
    """
    parsers = parsers if parsers is not None else PARSERS
    parser = parsers.get(file.extension)
    if parser is None:
        logger.error("parser.unsupported_file_type", file_name=file.name)
        raise UnsupportedFileTypeError(file.name)

    parsed = parser(file)

    if _is_matrix(parsed):
        logger.debug("parser.flattening_matrix", file_name=file.name, rows=len(parsed))
        return flatten_matrix(parsed)
    if not isinstance(parsed, dict):
        raise FileParseError(file.name, f"Parser returned {type(parsed).__name__}, not a record")
    return parsed
