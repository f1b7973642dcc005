"""
Web interface for IFRS Bridge.

A Flask JSON API over the converter: projects, statement upload, the
editable grid, and the three model-backed operations. State lives in memory
for the lifetime of the process.
"""

import os
from typing import Any, Tuple

from flask import Flask, jsonify, request

from .errors import (
    EmptyFinancialDataError,
    FileParseError,
    FormatNotImplementedError,
    IFRSBridgeError,
    MalformedStatementError,
    PayloadShapeError,
    TransportError,
    UnsupportedFileTypeError,
)
from .parsing import UploadedFile
from .utils.logging import get_logger, setup_logging
from .utils.settings import config
from .utils.settings_store import SettingsStore
from .workspace import ProjectRegistry

app = Flask(__name__)
logger = get_logger()

store = SettingsStore()
registry = ProjectRegistry(store)

_STATUS_BY_ERROR = [
    ((UnsupportedFileTypeError, FormatNotImplementedError), 415),
    ((FileParseError, MalformedStatementError, EmptyFinancialDataError), 400),
    ((TransportError, PayloadShapeError), 502),
]


def _error_response(error: IFRSBridgeError) -> Tuple[Any, int]:
    status = 500
    for error_types, error_status in _STATUS_BY_ERROR:
        if isinstance(error, error_types):
            status = error_status
            break
    return jsonify({"error": str(error), "code": error.code}), status


def _not_found(message: str) -> Tuple[Any, int]:
    return jsonify({"error": message, "code": "not_found"}), 404


def _in_flight(operation: str) -> Tuple[Any, int]:
    return (
        jsonify({"error": f"{operation} is already in progress", "code": "operation_in_flight"}),
        409,
    )


def _mask(api_key: str) -> str:
    if not api_key:
        return ""
    return "*" * max(len(api_key) - 4, 0) + api_key[-4:]


def _uploaded_file():
    uploaded = request.files.get("file")
    if uploaded is None or not uploaded.filename:
        return None
    return UploadedFile(name=uploaded.filename, content=uploaded.read())


@app.route("/api/projects", methods=["GET"])
def list_projects():
    return jsonify([project.to_dict() for project in registry.list()])


@app.route("/api/projects", methods=["POST"])
def create_project():
    data = request.get_json(silent=True) or {}
    name = str(data.get("name", "")).strip()
    if not name:
        return jsonify({"error": "No project name provided", "code": "invalid_request"}), 400
    project = registry.create(name, str(data.get("description", "")))
    return jsonify(project.to_dict()), 201


@app.route("/api/projects/<project_id>/statements", methods=["POST"])
def upload_statement(project_id: str):
    """
    Parse an uploaded statement and add it to the project.

    Returns:
        The new statement with its parsed record and index
    """
    try:
        session = registry.get(project_id).session
    except KeyError as e:
        return _not_found(str(e))

    file = _uploaded_file()
    if file is None:
        return jsonify({"error": "No file provided", "code": "invalid_request"}), 400

    try:
        statement = session.upload(file)
    except IFRSBridgeError as e:
        logger.error("web.upload_failed", file_name=file.name, error=str(e))
        return _error_response(e)

    return jsonify({"index": len(session.statements) - 1, **statement.to_dict()}), 201


@app.route("/api/projects/<project_id>/statements/<int:index>", methods=["PUT"])
def replace_statement(project_id: str, index: int):
    try:
        session = registry.get(project_id).session
    except KeyError as e:
        return _not_found(str(e))

    file = _uploaded_file()
    if file is None:
        return jsonify({"error": "No file provided", "code": "invalid_request"}), 400

    try:
        statement = session.replace(index, file)
    except IndexError as e:
        return _not_found(str(e))
    except IFRSBridgeError as e:
        logger.error("web.upload_failed", file_name=file.name, error=str(e))
        return _error_response(e)

    return jsonify({"index": index, **statement.to_dict()})


@app.route("/api/projects/<project_id>/statements/<int:index>/grid", methods=["GET"])
def statement_grid(project_id: str, index: int):
    try:
        grid = registry.get(project_id).session.grid(index)
    except (KeyError, IndexError) as e:
        return _not_found(str(e))
    return jsonify({"columns": grid.columns, "rows": grid.rows, "rowIndices": grid.row_indices})


@app.route("/api/projects/<project_id>/statements/<int:index>/cells", methods=["PATCH"])
def edit_cell(project_id: str, index: int):
    """
    Apply one grid edit.

    Expects JSON ``{"field": str, "row": int, "value": scalar}``.
    """
    data = request.get_json(silent=True) or {}
    field_name = data.get("field")
    row_index = data.get("row")
    value = data.get("value")
    if (
        not isinstance(field_name, str)
        or not field_name
        or not isinstance(row_index, int)
        or isinstance(row_index, bool)
        or row_index < 0
        or isinstance(value, (dict, list))
    ):
        return jsonify({"error": "Invalid cell edit", "code": "invalid_request"}), 400

    try:
        key = registry.get(project_id).session.edit_cell(index, field_name, row_index, value)
    except (KeyError, IndexError) as e:
        return _not_found(str(e))
    return jsonify({"key": key, "value": value})


@app.route("/api/projects/<project_id>/statements/<int:index>/convert", methods=["POST"])
async def convert_statement(project_id: str, index: int):
    try:
        session = registry.get(project_id).session
        session.statement(index)
    except (KeyError, IndexError) as e:
        return _not_found(str(e))

    try:
        result = await session.convert(index)
    except IFRSBridgeError as e:
        return _error_response(e)

    if result is None:
        return _in_flight("Conversion")
    return jsonify(result.to_dict())


@app.route("/api/projects/<project_id>/statements/<int:index>/disclosures", methods=["POST"])
async def statement_disclosures(project_id: str, index: int):
    try:
        session = registry.get(project_id).session
        session.statement(index)
    except (KeyError, IndexError) as e:
        return _not_found(str(e))

    try:
        sections = await session.generate_disclosures(index)
    except IFRSBridgeError as e:
        return _error_response(e)

    if sections is None:
        return _in_flight("Disclosure generation")
    return jsonify([section.to_dict() for section in sections])


@app.route("/api/projects/<project_id>/analysis", methods=["POST"])
async def financial_health(project_id: str):
    """
    Run the health analysis over every statement of the project.

    A failed analysis still returns the empty result together with the error.
    """
    try:
        session = registry.get(project_id).session
    except KeyError as e:
        return _not_found(str(e))

    if not session.statements:
        return jsonify({"error": "No statements to analyze", "code": "no_statements"}), 400

    data = request.get_json(silent=True) or {}
    analysis = await session.analyze(locale=str(data.get("locale", "en")))
    if analysis is None:
        return _in_flight("Financial health analysis")
    return jsonify({"analysis": analysis.to_dict(), "error": session.last_error})


@app.route("/api/settings", methods=["GET"])
def get_settings():
    api_key = store.get_api_key()
    return jsonify(
        {
            "apiKeyConfigured": bool(api_key),
            "apiKey": _mask(api_key),
            "customDisclosuresPrompt": store.get_custom_disclosures_prompt(),
        }
    )


@app.route("/api/settings", methods=["PUT"])
def save_settings():
    data = request.get_json(silent=True) or {}
    try:
        if "apiKey" in data:
            store.set_api_key(str(data["apiKey"] or ""))
        if "customDisclosuresPrompt" in data:
            store.set_custom_disclosures_prompt(str(data["customDisclosuresPrompt"] or ""))
    except OSError as e:
        logger.error("web.settings_save_failed", error=str(e))
        return jsonify({"error": "Failed to save settings", "code": "settings_save_failed"}), 500
    return get_settings()


def main():
    """Main entry point for the web interface."""
    setup_logging()
    host = os.getenv("SERVER_HOST", "127.0.0.1")
    port = int(os.getenv("SERVER_PORT", "8000"))
    debug = os.getenv("DEBUG", "false").lower() == "true"

    logger.info(
        f"Starting IFRS Bridge web interface on {host}:{port}",
        environment=config.get("environment", "local"),
    )
    app.run(debug=debug, host=host, port=port)


if __name__ == "__main__":
    main()
