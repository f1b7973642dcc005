"""Tests for disclosure splitting and generation."""

from unittest.mock import AsyncMock, patch

import pytest

from ifrsbridge.api.disclosures import (
    DisclosureSection,
    build_disclosures_prompt,
    generate_disclosures,
    split_disclosures,
)
from ifrsbridge.errors import TransportError
from ifrsbridge.utils.settings import config


# ---------------------------------------------------------------------------
# split_disclosures
# ---------------------------------------------------------------------------
class TestSplitDisclosures:
    """Tests for split_disclosures()."""

    def test_two_sections(self):
        text = "IFRS 15 - Revenue:\nFoo\n\nIAS 1 - Presentation:\nBar"
        assert split_disclosures(text) == [
            DisclosureSection(standard="IFRS 15 - Revenue:", content="Foo"),
            DisclosureSection(standard="IAS 1 - Presentation:", content="Bar"),
        ]

    def test_multiline_content(self):
        text = "IFRS 16 - Leases:\nLine one\nLine two\n"
        assert split_disclosures(text)[0].content == "Line one\nLine two"

    def test_no_headings_is_empty(self):
        assert split_disclosures("The company has no material disclosures.") == []

    def test_empty_text(self):
        assert split_disclosures("") == []

    def test_preamble_before_first_heading_dropped(self):
        text = "Here are the disclosures:\n\nIAS 2 - Inventories:\nFIFO applied."
        sections = split_disclosures(text)
        assert len(sections) == 1
        assert sections[0].standard == "IAS 2 - Inventories:"

    def test_heading_without_content_dropped(self):
        text = "IFRS 9 - Financial Instruments:\nIAS 7 - Cash Flows:\nDirect method."
        assert [s.standard for s in split_disclosures(text)] == ["IAS 7 - Cash Flows:"]

    def test_heading_followed_by_blank_lines_kept_empty(self):
        text = "IAS 1 - Presentation:\n\nIAS 2 - Inventories:\nFIFO applied."
        sections = split_disclosures(text)
        assert [(s.standard, s.content) for s in sections] == [
            ("IAS 1 - Presentation:", ""),
            ("IAS 2 - Inventories:", "FIFO applied."),
        ]

    def test_heading_label_trimmed(self):
        sections = split_disclosures("IAS 36 - Impairment:   \nNo impairment.")
        assert sections[0].standard == "IAS 36 - Impairment:"

    def test_indented_heading_is_content(self):
        sections = split_disclosures("IAS 1 - Presentation:\n  IAS 8 - Policies: see note")
        assert len(sections) == 1
        assert "IAS 8" in sections[0].content

    def test_order_preserved(self):
        text = (
            "IAS 12 - Income Taxes:\na\n"
            "IFRS 3 - Business Combinations:\nb\n"
            "IAS 1 - Presentation:\nc"
        )
        assert [s.content for s in split_disclosures(text)] == ["a", "b", "c"]


# ---------------------------------------------------------------------------
# build_disclosures_prompt
# ---------------------------------------------------------------------------
class TestBuildDisclosuresPrompt:
    """Tests for build_disclosures_prompt()."""

    def test_default_template_embeds_data(self):
        prompt = build_disclosures_prompt({"Amount_0": 1000})
        assert '"Amount_0": 1000' in prompt
        assert "IFRS X - Standard Name:" in prompt

    def test_custom_template_with_placeholder(self):
        prompt = build_disclosures_prompt({"Amount_0": 1}, "Notes for:\n{ifrs_data}\nEnd")
        assert prompt.startswith("Notes for:\n{")
        assert prompt.endswith("}\nEnd")

    def test_custom_template_without_placeholder_gets_data_appended(self):
        prompt = build_disclosures_prompt({"Amount_0": 1}, "Write IAS notes.")
        assert prompt.startswith("Write IAS notes.")
        assert '"Amount_0": 1' in prompt


# ---------------------------------------------------------------------------
# generate_disclosures
# ---------------------------------------------------------------------------
class TestGenerateDisclosures:
    """Tests for generate_disclosures()."""

    @pytest.mark.asyncio
    async def test_sections_from_fenced_response(
        self, mock_context, settings_store, make_completion
    ):
        response = make_completion("```\nIFRS 15 - Revenue:\nOver time.\n```")
        with patch(
            "ifrsbridge.api.disclosures.complete",
            new_callable=AsyncMock,
            return_value=response,
        ) as mock_complete:
            sections = await generate_disclosures(
                {"Amount_0": 1000}, mock_context, store=settings_store
            )

        assert sections == [DisclosureSection("IFRS 15 - Revenue:", "Over time.")]
        messages = mock_complete.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "IFRS disclosures" in messages[0]["content"]
        assert mock_complete.call_args.kwargs["llm_params"]["temperature"] == (
            config.llm.disclosures.temperature
        )

    @pytest.mark.asyncio
    async def test_custom_prompt_from_store(self, mock_context, settings_store, make_completion):
        settings_store.set_custom_disclosures_prompt("Only IAS 1 please: {ifrs_data}")
        with patch(
            "ifrsbridge.api.disclosures.complete",
            new_callable=AsyncMock,
            return_value=make_completion("none"),
        ) as mock_complete:
            sections = await generate_disclosures({"A_0": 1}, mock_context, store=settings_store)

        assert sections == []
        user_prompt = mock_complete.call_args.args[0][1]["content"]
        assert user_prompt.startswith("Only IAS 1 please: {")

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, mock_context, settings_store):
        with patch(
            "ifrsbridge.api.disclosures.complete",
            new_callable=AsyncMock,
            side_effect=TransportError("Unauthorized", status_code=401),
        ):
            with pytest.raises(TransportError, match="Unauthorized"):
                await generate_disclosures({"A_0": 1}, mock_context, store=settings_store)
