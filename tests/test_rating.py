"""Tests for paper relevance rating."""

import json
from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, Mock

import pytest

from assistant.exceptions import ModelCallError, UnparsableRatingResponseError
from assistant.models.papers import PaperRating, PaperRecord, SearchCategory
from assistant.services.rating import (
    RATING_MAX_TOKENS,
    RATING_RUBRIC,
    RATING_SYSTEM_PROMPT,
    RatingService,
    apply_ratings,
    build_rating_prompt,
    parse_ratings,
)


def make_paper(paper_id: str, title: str, hour: int = 12) -> PaperRecord:
    return PaperRecord(
        id=paper_id,
        title=title,
        summary="Abstract.",
        authors=["Grace Hopper"],
        updated=datetime(2024, 3, 1, hour, tzinfo=UTC),
        published=datetime(2024, 3, 1, hour, tzinfo=UTC),
    )


PAPERS = [
    make_paper("2403.00001", "Quantum Error Correction With Surface Codes", hour=9),
    make_paper("2403.00002", "Cold Atom Spectroscopy", hour=10),
    make_paper("2403.00003", "A Quantum Software Framework", hour=11),
]


class TestRatingPrompt:
    """Tests for prompt construction."""

    def test_prompt_layout(self):
        """Test rubric, example and real input appear in order."""
        prompt = build_rating_prompt(PAPERS)

        assert prompt.startswith(RATING_RUBRIC)
        assert prompt.index("Quantum Error Correction For Dummies") < prompt.index("2403.00001, ")
        assert prompt.endswith(
            "<Input>\n"
            "2403.00001, Quantum Error Correction With Surface Codes\n"
            "2403.00002, Cold Atom Spectroscopy\n"
            "2403.00003, A Quantum Software Framework\n"
            "<Output>"
        )


class TestParseRatings:
    """Tests for parsing the model reply."""

    def test_parse_array(self):
        """Test a well-formed reply."""
        ratings = parse_ratings('[{"Id": "2403.00001", "R": 5}, {"Id": "2403.00002", "R": 1}]')

        assert ratings == [PaperRating(id="2403.00001", rating=5), PaperRating(id="2403.00002", rating=1)]

    def test_numeric_ids_are_accepted(self):
        """Test ids given as numbers are read as strings."""
        assert parse_ratings('[{"Id": 1, "R": 3}]')[0].id == "1"

    @pytest.mark.parametrize(
        "reply",
        [
            "Here are the ratings: [{\"Id\": \"1\", \"R\": 5}]",
            '{"Id": "1", "R": 5}',
            '[{"Id": "1", "R": 9}]',
            '[{"Id": "1"}]',
        ],
    )
    def test_unparsable_replies(self, reply):
        """Test replies that are not a bare rating array fail."""
        with pytest.raises(UnparsableRatingResponseError) as exc_info:
            parse_ratings(reply)

        assert exc_info.value.response_text == reply


class TestApplyRatings:
    """Tests for ordering rated papers."""

    def test_sorted_by_rating_then_recency(self):
        """Test best ratings come first, newest first among equals."""
        ratings = [
            PaperRating(id="2403.00001", rating=5),
            PaperRating(id="2403.00002", rating=1),
            PaperRating(id="2403.00003", rating=5),
        ]

        rated = apply_ratings(PAPERS, ratings)

        assert [(item.paper.id, item.rating) for item in rated] == [
            ("2403.00003", 5),
            ("2403.00001", 5),
            ("2403.00002", 1),
        ]

    def test_unrated_papers_sort_last(self):
        """Test papers the model skipped get a zero rating."""
        rated = apply_ratings(PAPERS, [PaperRating(id="2403.00002", rating=2)])

        assert rated[0].paper.id == "2403.00002"
        assert [item.rating for item in rated] == [2, 0, 0]

    def test_unknown_ids_are_ignored(self):
        """Test ratings for papers that were not sent are dropped."""
        rated = apply_ratings(PAPERS[:1], [PaperRating(id="9999.9999", rating=5)])

        assert len(rated) == 1
        assert rated[0].rating == 0


class TestRatingService:
    """Tests for the rating run."""

    @pytest.fixture
    def paper_service(self):
        """Paper service returning the fixed papers."""
        service = Mock()
        service.fetch_papers = AsyncMock(return_value=PAPERS)
        return service

    @pytest.fixture
    def llm(self):
        """LLM service with a canned rating reply."""
        service = Mock()
        service.complete_text = AsyncMock(
            return_value=json.dumps(
                [{"Id": "2403.00001", "R": 4}, {"Id": "2403.00002", "R": 1}, {"Id": "2403.00003", "R": 5}]
            )
        )
        return service

    @pytest.mark.asyncio
    async def test_rate(self, paper_service, llm):
        """Test papers are fetched, rated and sorted."""
        service = RatingService(paper_service, llm)

        rated = await service.rate(SearchCategory.QUANTUM_PHYSICS, date(2024, 3, 1))

        paper_service.fetch_papers.assert_awaited_once_with(SearchCategory.QUANTUM_PHYSICS, date(2024, 3, 1))
        assert [item.paper.id for item in rated] == ["2403.00003", "2403.00001", "2403.00002"]

        prompt, system_prompt = llm.complete_text.await_args.args
        assert prompt == build_rating_prompt(PAPERS)
        assert system_prompt == RATING_SYSTEM_PROMPT
        assert llm.complete_text.await_args.kwargs == {
            "temperature": 0.0,
            "top_p": None,
            "max_tokens": RATING_MAX_TOKENS,
        }

    @pytest.mark.asyncio
    async def test_top_p_is_forwarded(self, paper_service, llm):
        """Test an explicit nucleus setting reaches the model call."""
        await RatingService(paper_service, llm, top_p=0.7).rate(SearchCategory.QUANTUM_PHYSICS, date(2024, 3, 1))

        assert llm.complete_text.await_args.kwargs["top_p"] == 0.7

    @pytest.mark.asyncio
    async def test_no_papers_skips_model(self, paper_service, llm):
        """Test an empty day produces an empty list without a model call."""
        paper_service.fetch_papers.return_value = []

        assert await RatingService(paper_service, llm).rate(SearchCategory.QUANTUM_COMPUTING, date(2024, 3, 2)) == []
        llm.complete_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_reply(self, paper_service, llm):
        """Test an empty model reply is a model call error."""
        llm.complete_text.return_value = ""

        with pytest.raises(ModelCallError, match="No completions found."):
            await RatingService(paper_service, llm).rate(SearchCategory.QUANTUM_PHYSICS, date(2024, 3, 1))

    @pytest.mark.asyncio
    async def test_prose_reply(self, paper_service, llm):
        """Test a reply with text around the JSON is rejected."""
        llm.complete_text.return_value = 'Sure! [{"Id": "2403.00001", "R": 4}]'

        with pytest.raises(UnparsableRatingResponseError):
            await RatingService(paper_service, llm).rate(SearchCategory.QUANTUM_PHYSICS, date(2024, 3, 1))
