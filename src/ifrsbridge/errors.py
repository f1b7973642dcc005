"""
Error types raised by IFRS Bridge.

Each error carries a stable ``code`` the web layer returns alongside the
message so the client can show a localized text.
"""

from typing import Optional


class IFRSBridgeError(Exception):
    """Base class for all application errors."""

    code = "error"


# Unsupported input


class UnsupportedFileTypeError(IFRSBridgeError, ValueError):
    """The uploaded file has an extension no parser handles."""

    code = "unsupported_file_type"

    def __init__(self, file_name: str):
        super().__init__(f"Unsupported file type: {file_name}")
        self.file_name = file_name


class FormatNotImplementedError(IFRSBridgeError, NotImplementedError):
    """The format is recognised but has no parser. Retrying will not help."""

    code = "format_not_implemented"

    def __init__(self, file_name: str, format_name: str):
        super().__init__(f"{format_name} parsing is not implemented yet")
        self.file_name = file_name
        self.format_name = format_name


class FileParseError(IFRSBridgeError, ValueError):
    """A supported file could not be parsed."""

    code = "file_parse_failed"

    def __init__(self, file_name: str, message: str):
        super().__init__(f"{message} (file: {file_name})")
        self.file_name = file_name


# Malformed input data


class MalformedStatementError(IFRSBridgeError, ValueError):
    """A statement is missing its financial data."""

    code = "malformed_statement"

    def __init__(self, statement_name: str, field_name: str = "ifrs_data"):
        super().__init__(f"Invalid {field_name} for statement: {statement_name}")
        self.statement_name = statement_name


class EmptyFinancialDataError(IFRSBridgeError, ValueError):
    """There is no financial data to send to the model."""

    code = "empty_financial_data"


# Transport and payload failures


class TransportError(IFRSBridgeError):
    """The chat-completion endpoint answered with a non-success status."""

    code = "transport_failed"

    def __init__(self, status_text: str, status_code: Optional[int] = None):
        super().__init__(f"OpenAI API request failed: {status_text}")
        self.status_text = status_text
        self.status_code = status_code


class PayloadShapeError(IFRSBridgeError, ValueError):
    """The model output did not have the requested structure."""

    code = "invalid_payload"
