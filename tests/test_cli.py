"""Tests for the command line entry point and console rendering."""

import argparse
import os
from datetime import UTC, date, datetime
from unittest.mock import patch

import pytest
from rich.console import Console

from assistant.cli import build_parser, main, parse_day
from assistant.models.llm import ToolCallResult
from assistant.models.papers import PaperRecord, RatedPaper, SearchCategory
from assistant.renderers.console import ConsoleRenderer, rating_style


def recording_console() -> Console:
    return Console(record=True, width=160, color_system=None)


class TestArguments:
    """Tests for argument parsing."""

    def test_parse_day_formats(self):
        """Test both compact and dashed dates are accepted."""
        assert parse_day("20240301") == date(2024, 3, 1)
        assert parse_day("2024-03-01") == date(2024, 3, 1)

    def test_parse_day_rejects_garbage(self):
        """Test invalid dates are argument errors."""
        with pytest.raises(argparse.ArgumentTypeError):
            parse_day("yesterday")

    def test_defaults_to_chat(self):
        """Test no subcommand starts the chat with a demo prompt."""
        args = build_parser().parse_args([])

        assert args.command == "chat"
        assert args.demo is None

    def test_run_with_demo(self):
        """Test choosing the assistant run for concerts."""
        args = build_parser().parse_args(["run", "concerts"])

        assert args.command == "run"
        assert args.demo == "concerts"

    def test_rate_options(self):
        """Test the rating run options."""
        args = build_parser().parse_args(["rate", "--date", "20240301", "--category", "QuantumComputing"])

        assert args.command == "rate"
        assert args.day == date(2024, 3, 1)
        assert args.category == SearchCategory.QUANTUM_COMPUTING

    def test_rate_defaults(self):
        """Test the rating run defaults to quantum physics and no fixed date."""
        args = build_parser().parse_args(["rate"])

        assert args.day is None
        assert args.category == SearchCategory.QUANTUM_PHYSICS

    def test_unknown_demo(self):
        """Test unknown assistants are rejected."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["chat", "weather"])


class TestMain:
    """Tests for startup."""

    def test_missing_configuration_exits(self):
        """Test startup stops before any network call without credentials."""
        with patch.dict(os.environ, {}, clear=True), patch("assistant.cli.Services.from_settings") as services:
            assert main(["rate"]) == 2

        services.assert_not_called()


class TestConsoleRenderer:
    """Tests for console output."""

    @pytest.mark.parametrize(
        "rating,style",
        [(5, "green"), (4, "green"), (3, "yellow"), (2, "yellow"), (1, "red"), (0, "white")],
    )
    def test_rating_style(self, rating, style):
        """Test rating colours."""
        assert rating_style(rating) == style

    def test_empty_ratings(self):
        """Test the empty rating message."""
        console = recording_console()
        ConsoleRenderer(console).ratings_table([])

        assert "No items today..." in console.export_text()

    def test_ratings_table(self):
        """Test rated papers are listed with their rating."""
        paper = PaperRecord(
            id="2403.00001",
            title="A Quantum Software Framework",
            summary="Abstract.",
            authors=["Grace Hopper"],
            updated=datetime(2024, 3, 2, 15, 30, tzinfo=UTC),
            published=datetime(2024, 3, 1, 12, tzinfo=UTC),
            pdf_link="http://arxiv.org/pdf/2403.00001v1",
        )
        console = recording_console()
        ConsoleRenderer(console).ratings_table([RatedPaper(paper=paper, rating=5)])

        output = console.export_text()
        assert "A Quantum Software Framework" in output
        # Rows are ordered by update time, so that is the time shown
        assert "Updated" in output
        assert "2024-03-02 15:30" in output
        assert "2024-03-01 12:00" not in output
        assert "Grace Hopper" in output

    def test_streamed_text_and_tool_result(self):
        """Test deltas print inline and tool output is pretty printed."""
        console = recording_console()
        renderer = ConsoleRenderer(console)

        renderer.assistant_delta("Let me ")
        renderer.assistant_delta("check.")
        renderer.tool_finished(ToolCallResult(tool_call_id="c1", name="BookTicket", output="Success!"))

        output = console.export_text()
        assert "Assistant: Let me check." in output
        assert "Success!" in output

    def test_tool_error(self):
        """Test failed tool calls are shown as errors."""
        console = recording_console()
        ConsoleRenderer(console).tool_finished(
            ToolCallResult(tool_call_id="c1", name="CancelTicket", output="Error: Unknown tool: CancelTicket", is_error=True)
        )

        assert "Unknown tool: CancelTicket" in console.export_text()
