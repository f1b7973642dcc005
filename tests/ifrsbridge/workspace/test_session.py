"""
Tests for the converter session, operation gating and simulated progress.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from ifrsbridge.api.conversion import ConversionResult
from ifrsbridge.api.disclosures import DisclosureSection
from ifrsbridge.api.health import HealthAnalysis
from ifrsbridge.errors import (
    FileParseError,
    MalformedStatementError,
    TransportError,
    UnsupportedFileTypeError,
)
from ifrsbridge.parsing import UploadedFile
from ifrsbridge.workspace import (
    ConverterSession,
    OperationGate,
    ProjectRegistry,
    SimulatedProgress,
)

CSV = b"Item,Amount\nRevenue,1000\n,\nCost,-400\n"


@pytest.fixture
def session(settings_store):
    session = ConverterSession(settings_store)
    session.upload(UploadedFile("pl.csv", CSV))
    return session


@pytest.fixture
def conversion_result():
    return ConversionResult(
        ifrs_data={"Item_0": "Revenue", "Amount_0": 1000},
        explanations=("No change",),
        recommendations=("Disclose policy",),
    )


# ---------------------------------------------------------------------------
# OperationGate
# ---------------------------------------------------------------------------
class TestOperationGate:
    """Test cases for the in-flight flag."""

    def test_second_acquire_fails(self):
        gate = OperationGate("conversion")
        assert gate.acquire() is True
        assert gate.acquire() is False
        assert gate.is_running

    def test_release_allows_reacquire(self):
        gate = OperationGate("conversion")
        gate.acquire()
        gate.release()
        assert not gate.is_running
        assert gate.acquire() is True


# ---------------------------------------------------------------------------
# SimulatedProgress
# ---------------------------------------------------------------------------
class TestSimulatedProgress:
    """Test cases for the cosmetic progress timer."""

    @pytest.mark.asyncio
    async def test_success_ends_at_100(self):
        values = []
        async with SimulatedProgress(values.append, interval=0.01, step=10, cap=90):
            await asyncio.sleep(0.05)

        assert values[0] == 0
        assert values[-1] == 100
        assert all(value <= 90 for value in values[:-1])

    @pytest.mark.asyncio
    async def test_value_never_passes_cap(self):
        values = []
        async with SimulatedProgress(values.append, interval=0.001, step=40, cap=90):
            await asyncio.sleep(0.05)

        assert max(values[:-1]) == 90

    @pytest.mark.asyncio
    async def test_failure_resets_to_zero(self):
        progress = SimulatedProgress(interval=0.01)
        with pytest.raises(RuntimeError):
            async with progress:
                await asyncio.sleep(0.03)
                raise RuntimeError("boom")

        assert progress.value == 0

    @pytest.mark.asyncio
    async def test_timer_stops_on_exit(self):
        values = []
        async with SimulatedProgress(values.append, interval=0.01):
            pass
        count = len(values)
        await asyncio.sleep(0.05)
        assert len(values) == count


# ---------------------------------------------------------------------------
# Statements and grid edits
# ---------------------------------------------------------------------------
class TestStatements:
    """Test cases for uploads, replacement and edits."""

    def test_upload_parses_file(self, session):
        statement = session.statements[0]
        assert statement.name == "pl.csv"
        assert statement.gaap_data["Amount_2"] == -400
        assert statement.ifrs_data is None

    def test_unsupported_upload_adds_nothing(self, session):
        with pytest.raises(UnsupportedFileTypeError):
            session.upload(UploadedFile("notes.txt", b"hello"))
        assert len(session.statements) == 1

    def test_replace(self, session):
        session.replace(0, UploadedFile("bs.csv", b"Asset,Value\nCash,5\n"))
        assert session.statements[0].name == "bs.csv"
        assert session.statements[0].gaap_data == {"Asset_0": "Cash", "Value_0": 5}

    def test_replace_with_bad_file_keeps_original(self, session):
        with pytest.raises(FileParseError):
            session.replace(0, UploadedFile("broken.xlsx", b"not a workbook"))
        assert session.statements[0].name == "pl.csv"

    def test_statement_out_of_range(self, session):
        with pytest.raises(IndexError):
            session.statement(5)

    def test_grid_hides_empty_rows(self, session):
        grid = session.grid(0)
        assert grid.row_indices == [0, 2]

    def test_edit_cell_writes_one_key(self, session):
        before = dict(session.statements[0].gaap_data)
        key = session.edit_cell(0, "Amount", 2, -450)

        after = session.statements[0].gaap_data
        assert key == "Amount_2"
        assert after["Amount_2"] == -450
        assert {k: v for k, v in after.items() if k != key} == {
            k: v for k, v in before.items() if k != key
        }


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
class TestConvert:
    """Test cases for ConverterSession.convert()."""

    @pytest.mark.asyncio
    async def test_stores_result(self, session, conversion_result):
        with patch(
            "ifrsbridge.workspace.session.convert_to_ifrs",
            new_callable=AsyncMock,
            return_value=conversion_result,
        ) as mock_convert:
            result = await session.convert(0)

        assert result is conversion_result
        statement = session.statements[0]
        assert statement.ifrs_data == {"Item_0": "Revenue", "Amount_0": 1000}
        assert statement.explanations == ["No change"]
        gaap_data, context = mock_convert.call_args.args
        assert gaap_data is statement.gaap_data
        assert context["auth_config"] == {"token": "test-api-key"}
        assert not session.conversion_gate.is_running

    @pytest.mark.asyncio
    async def test_second_trigger_is_noop(self, session, conversion_result):
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_convert(gaap_data, context):
            started.set()
            await release.wait()
            return conversion_result

        with patch(
            "ifrsbridge.workspace.session.convert_to_ifrs", side_effect=slow_convert
        ) as mock_convert:
            first = asyncio.create_task(session.convert(0))
            await started.wait()
            assert session.is_busy

            assert await session.convert(0) is None

            release.set()
            assert await first is conversion_result

        assert mock_convert.call_count == 1
        assert not session.is_busy

    @pytest.mark.asyncio
    async def test_failure_leaves_statement_unchanged(self, session):
        with patch(
            "ifrsbridge.workspace.session.convert_to_ifrs",
            new_callable=AsyncMock,
            side_effect=TransportError("Unauthorized", status_code=401),
        ):
            with pytest.raises(TransportError):
                await session.convert(0)

        assert session.statements[0].ifrs_data is None
        assert not session.conversion_gate.is_running


class TestGenerateDisclosures:
    """Test cases for ConverterSession.generate_disclosures()."""

    @pytest.mark.asyncio
    async def test_requires_conversion(self, session):
        with pytest.raises(MalformedStatementError):
            await session.generate_disclosures(0)

    @pytest.mark.asyncio
    async def test_stores_sections(self, session):
        session.statements[0].ifrs_data = {"Amount_0": 1000}
        sections = [DisclosureSection("IFRS 15 - Revenue:", "Over time.")]
        with patch(
            "ifrsbridge.workspace.session.generate_disclosures",
            new_callable=AsyncMock,
            return_value=sections,
        ) as mock_generate:
            result = await session.generate_disclosures(0)

        assert result == sections
        assert session.statements[0].disclosures == sections
        assert mock_generate.call_args.kwargs["store"] is session.store

    @pytest.mark.asyncio
    async def test_noop_while_in_flight(self, session):
        session.statements[0].ifrs_data = {"Amount_0": 1000}
        session.disclosures_gate.acquire()
        with patch(
            "ifrsbridge.api.disclosures.complete", new_callable=AsyncMock
        ) as mock_complete:
            assert await session.generate_disclosures(0) is None

        mock_complete.assert_not_awaited()
        assert session.statements[0].disclosures == []
        assert session.disclosures_gate.is_running


class TestAnalyze:
    """Test cases for ConverterSession.analyze()."""

    @pytest.mark.asyncio
    async def test_no_statements(self, settings_store):
        with patch(
            "ifrsbridge.workspace.session.analyze_financial_health", new_callable=AsyncMock
        ) as mock_analyze:
            assert await ConverterSession(settings_store).analyze() is None
        mock_analyze.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_reports_full_progress(self, session):
        session.statements[0].ifrs_data = {"Revenue_0": 1000}
        analysis = HealthAnalysis(analysis="Fine", ratios={"Current ratio": 1.2})
        values = []
        with patch(
            "ifrsbridge.workspace.session.analyze_financial_health",
            new_callable=AsyncMock,
            return_value=analysis,
        ) as mock_analyze:
            result = await session.analyze("de", on_progress=values.append)

        assert result is analysis
        assert session.health_analysis is analysis
        assert session.last_error is None
        assert values[-1] == 100
        combined, locale, _context = mock_analyze.call_args.args
        assert combined == {"Revenue_0": 1000}
        assert locale == "de"

    @pytest.mark.asyncio
    async def test_unconverted_statement_gives_default_analysis(self, session):
        values = []
        result = await session.analyze(on_progress=values.append)

        assert result == HealthAnalysis()
        assert "pl.csv" in session.last_error
        assert values[-1] == 0
        assert not session.analysis_gate.is_running

    @pytest.mark.asyncio
    async def test_transport_failure_gives_default_analysis(self, session):
        session.statements[0].ifrs_data = {"Revenue_0": 1000}
        with patch(
            "ifrsbridge.workspace.session.analyze_financial_health",
            new_callable=AsyncMock,
            side_effect=TransportError("Too Many Requests", status_code=429),
        ):
            result = await session.analyze()

        assert result.to_dict() == HealthAnalysis().to_dict()
        assert "Too Many Requests" in session.last_error

    @pytest.mark.asyncio
    async def test_unexpected_failure_gives_default_analysis(self, session):
        session.statements[0].ifrs_data = {"Revenue_0": 1000}
        session.health_analysis = HealthAnalysis(analysis="Previous run")
        values = []
        with patch(
            "ifrsbridge.api.health.complete",
            new_callable=AsyncMock,
            side_effect=RuntimeError("Event loop is closed"),
        ):
            result = await session.analyze(on_progress=values.append)

        assert result == HealthAnalysis()
        assert session.health_analysis == HealthAnalysis()
        assert session.last_error == "Event loop is closed"
        assert values[-1] == 0
        assert not session.analysis_gate.is_running

    @pytest.mark.asyncio
    async def test_noop_while_in_flight(self, session):
        session.statements[0].ifrs_data = {"Revenue_0": 1000}
        session.analysis_gate.acquire()
        with patch("ifrsbridge.api.health.complete", new_callable=AsyncMock) as mock_complete:
            assert await session.analyze() is None

        mock_complete.assert_not_awaited()
        assert session.health_analysis is None
        assert session.analysis_gate.is_running


# ---------------------------------------------------------------------------
# ProjectRegistry
# ---------------------------------------------------------------------------
class TestProjectRegistry:
    """Test cases for the project registry."""

    def test_create_and_get(self, settings_store):
        registry = ProjectRegistry(settings_store)
        project = registry.create("FY24", "Annual statements")

        assert registry.get(project.id) is project
        assert project.session.store is settings_store
        assert project.to_dict()["status"] == "idle"
        assert project.to_dict()["statements"] == []

    def test_unknown_id(self, settings_store):
        with pytest.raises(KeyError):
            ProjectRegistry(settings_store).get("missing")

    def test_list_in_creation_order(self, settings_store):
        registry = ProjectRegistry(settings_store)
        first = registry.create("A")
        second = registry.create("B")
        assert registry.list() == [first, second]

    def test_status_while_busy(self, settings_store):
        project = ProjectRegistry(settings_store).create("A")
        project.session.analysis_gate.acquire()
        assert project.status == "processing"
