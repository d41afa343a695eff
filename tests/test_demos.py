"""Tests for assistant assembly."""

from datetime import date
from unittest.mock import Mock

import pytest

from assistant.demos import ARXIV_INTRO, CONCERTS_INTRO, build_demo
from assistant.models.messages import AssistantMessage, SystemMessage


@pytest.fixture
def services():
    """Services with a stand-in paper service."""
    return Mock()


class TestBuildDemo:
    """Tests for building the two assistants."""

    def test_arxiv_demo(self, services):
        """Test the paper assistant gets its tools and a time-grounded prompt."""
        demo = build_demo("arxiv", services, today=date(2024, 3, 1))

        assert demo.tools.get_tool_names() == ["FetchPapers", "SummarizePaper"]
        assert "Today is Friday, March 1, 2024." in demo.instructions
        assert "Yesterday was Thursday, February 29, 2024." in demo.instructions
        assert "`paperId` parameter is mandatory" in demo.instructions

    def test_concert_demo(self, services):
        """Test the concert assistant gets search and booking."""
        demo = build_demo("concerts", services, today=date(2024, 6, 10))

        assert demo.tools.get_tool_names() == ["SearchConcerts", "BookTicket"]
        assert "Tomorrow will be Tuesday, June 11, 2024." in demo.instructions
        assert demo.intro == CONCERTS_INTRO

    def test_new_history_is_seeded(self, services):
        """Test a fresh history holds the instructions and the intro."""
        demo = build_demo("arxiv", services, today=date(2024, 3, 1))

        history = demo.new_history(limit=15)

        assert history.messages == [
            SystemMessage(content=demo.instructions),
            AssistantMessage(content=ARXIV_INTRO),
        ]

    def test_unknown_demo(self, services):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError, match="Unknown demo"):
            build_demo("weather", services)
