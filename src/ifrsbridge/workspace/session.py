"""
In-memory working state for converting a set of statements.

A ``ConverterSession`` owns the uploaded statements, applies grid edits to
their records and runs the API operations. Each operation is gated so a
second trigger while one is in flight does nothing. Nothing here is
persisted.
"""

import asyncio
import threading
import uuid
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..api.conversion import ConversionResult, convert_to_ifrs
from ..api.disclosures import DisclosureSection, generate_disclosures
from ..api.health import HealthAnalysis, analyze_financial_health, merge_statement_data
from ..connections.llm_connector import build_context
from ..errors import MalformedStatementError
from ..parsing import Grid, ParsedRecord, UploadedFile, build_grid, parse_file, update_cell
from ..parsing.file_parsers import Scalar
from ..utils.logging import get_logger
from ..utils.settings import config
from ..utils.settings_store import SettingsStore

logger = get_logger()

ProgressCallback = Callable[[int], None]


class OperationGate:
    """In-flight flag for one operation. Acquiring a held gate fails."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def acquire(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            return True

    def release(self) -> None:
        with self._lock:
            self._running = False


class SimulatedProgress:
    """
    Cosmetic progress indicator for a request with no real progress events.

    While active, a timer raises the value by ``step`` every ``interval``
    seconds up to ``cap``. On exit the timer is cancelled and the value jumps
    to 100 on success or back to 0 on failure.
    """

    def __init__(
        self,
        on_progress: Optional[ProgressCallback] = None,
        interval: Optional[float] = None,
        step: Optional[int] = None,
        cap: Optional[int] = None,
    ):
        self.on_progress = on_progress
        self.interval = interval if interval is not None else config.progress_interval
        self.step = step if step is not None else config.progress_step
        self.cap = cap if cap is not None else config.progress_cap
        self.value = 0
        self._task: Optional[asyncio.Task] = None

    def _report(self, value: int) -> None:
        self.value = value
        if self.on_progress is not None:
            self.on_progress(value)

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self._report(min(self.value + self.step, self.cap))

    async def __aenter__(self) -> "SimulatedProgress":
        self._report(0)
        self._task = asyncio.create_task(self._tick())
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._report(100 if exc_type is None else 0)
        return False


@dataclass
class Statement:
    """One uploaded statement and everything derived from it."""

    name: str
    gaap_data: ParsedRecord
    ifrs_data: Optional[ParsedRecord] = None
    explanations: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    disclosures: List[DisclosureSection] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "gaapData": self.gaap_data,
            "ifrsData": self.ifrs_data,
            "explanations": self.explanations,
            "recommendations": self.recommendations,
            "disclosures": [section.to_dict() for section in self.disclosures],
        }


class ConverterSession:
    """Statements of one project and the operations run on them."""

    def __init__(self, store: Optional[SettingsStore] = None):
        self.store = store or SettingsStore()
        self.statements: List[Statement] = []
        self.health_analysis: Optional[HealthAnalysis] = None
        self.last_error: Optional[str] = None
        self.conversion_gate = OperationGate("conversion")
        self.disclosures_gate = OperationGate("disclosures")
        self.analysis_gate = OperationGate("analysis")

    @property
    def is_busy(self) -> bool:
        return any(
            gate.is_running
            for gate in (self.conversion_gate, self.disclosures_gate, self.analysis_gate)
        )

    def statement(self, index: int) -> Statement:
        """
        Raises:
            IndexError: If there is no statement at ``index``.
        """
        if index < 0 or index >= len(self.statements):
            raise IndexError(f"No statement at index {index}")
        return self.statements[index]

    def upload(self, file: UploadedFile) -> Statement:
        """Parse ``file`` and add it as a new statement."""
        statement = Statement(name=file.name, gaap_data=parse_file(file))
        self.statements.append(statement)
        logger.info("session.statement_added", name=file.name, cells=len(statement.gaap_data))
        return statement

    def replace(self, index: int, file: UploadedFile) -> Statement:
        """Parse ``file`` and replace the statement at ``index`` with it."""
        self.statement(index)
        statement = Statement(name=file.name, gaap_data=parse_file(file))
        self.statements[index] = statement
        logger.info("session.statement_replaced", index=index, name=file.name)
        return statement

    def grid(self, index: int) -> Grid:
        return build_grid(self.statement(index).gaap_data)

    def edit_cell(self, index: int, field_name: str, row_index: int, value: Scalar) -> str:
        """Write one grid edit to the statement's GAAP record."""
        key = update_cell(self.statement(index).gaap_data, field_name, row_index, value)
        logger.debug("session.cell_edited", index=index, key=key)
        return key

    async def convert(self, index: int) -> Optional[ConversionResult]:
        """
        Convert one statement to IFRS.

        Returns None without doing anything if a conversion is in flight.
        Errors propagate to the caller and leave the statement unchanged.
        """
        statement = self.statement(index)
        if not self.conversion_gate.acquire():
            logger.info("session.conversion_in_flight", index=index)
            return None
        try:
            result = await convert_to_ifrs(statement.gaap_data, build_context(self.store))
        finally:
            self.conversion_gate.release()

        statement.ifrs_data = dict(result.ifrs_data)
        statement.explanations = list(result.explanations)
        statement.recommendations = list(result.recommendations)
        return result

    async def generate_disclosures(self, index: int) -> Optional[List[DisclosureSection]]:
        """
        Generate disclosures for a converted statement.

        Returns None without doing anything if generation is in flight.

        Raises:
            MalformedStatementError: If the statement has not been converted.
        """
        statement = self.statement(index)
        if statement.ifrs_data is None:
            raise MalformedStatementError(statement.name)
        if not self.disclosures_gate.acquire():
            logger.info("session.disclosures_in_flight", index=index)
            return None
        try:
            sections = await generate_disclosures(
                statement.ifrs_data, build_context(self.store), store=self.store
            )
        finally:
            self.disclosures_gate.release()

        statement.disclosures = sections
        return sections

    async def analyze(
        self, locale: str = "en", on_progress: Optional[ProgressCallback] = None
    ) -> Optional[HealthAnalysis]:
        """
        Run the health analysis over all statements.

        Returns None without doing anything if there are no statements or an
        analysis is in flight. Any failure is logged, its message is kept in
        ``last_error`` and an empty analysis is stored and returned.
        """
        if not self.statements:
            return None
        if not self.analysis_gate.acquire():
            logger.info("session.analysis_in_flight")
            return None

        self.last_error = None
        try:
            async with SimulatedProgress(on_progress):
                combined = merge_statement_data(self.statements)
                self.health_analysis = await analyze_financial_health(
                    combined, locale, build_context(self.store)
                )
        except Exception as e:
            logger.error(
                "session.analysis_failed",
                error=str(e),
                error_type=type(e).__name__,
                code=getattr(e, "code", None),
            )
            self.last_error = str(e)
            self.health_analysis = HealthAnalysis()
        finally:
            self.analysis_gate.release()

        return self.health_analysis


@dataclass
class Project:
    name: str
    description: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session: ConverterSession = field(default_factory=ConverterSession)

    @property
    def status(self) -> str:
        return "processing" if self.session.is_busy else "idle"

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdAt": self.created_at.isoformat(),
            "status": self.status,
            "statements": [statement.name for statement in self.session.statements],
        }


class ProjectRegistry:
    """Projects held for the lifetime of the process."""

    def __init__(self, store: Optional[SettingsStore] = None):
        self.store = store
        self._projects: Dict[str, Project] = {}

    def create(self, name: str, description: str = "") -> Project:
        project = Project(
            name=name, description=description, session=ConverterSession(self.store)
        )
        self._projects[project.id] = project
        logger.info("projects.created", project_id=project.id, name=name)
        return project

    def get(self, project_id: str) -> Project:
        """
        Raises:
            KeyError: If no project has this id.
        """
        if project_id not in self._projects:
            raise KeyError(f"No project with id {project_id}")
        return self._projects[project_id]

    def list(self) -> List[Project]:
        return list(self._projects.values())
