"""Relevance rating of papers for quantum software engineers."""

import json
from datetime import date

from pydantic import TypeAdapter, ValidationError

from assistant.exceptions import ModelCallError, UnparsableRatingResponseError
from assistant.models.papers import PaperRating, PaperRecord, RatedPaper, SearchCategory
from assistant.services.llm import LLMService
from assistant.services.papers import PaperService
from assistant.utils.logging import get_logger

logger = get_logger(__name__)

RATING_SYSTEM_PROMPT = "You are a classification engine that rates paper titles and replies with JSON only."

RATING_RUBRIC = (
    "Rate on a scale of 1-5 how relevant each headline is to quantum computing software engineers. "
    "Titles mentioning quantum frameworks, software, algorithms, machine learning and error correction "
    "should be rated highly. Quantum computing hardware topics should be rated lower. Other quantum physics "
    "topics should get low rating. Produce JSON result as specified in the output example."
)

RATING_EXAMPLE = """<Input>
1, Quantum Error Correction For Dummies.
2, Quantum algorithms for lattice gauge theory with cold atoms.
3, Fidelity of superconducting qubits under repeated readout.
4, A pedagogical revisit on the hydrogen atom induced by electric and magnetic fields.
<Output>
[{"Id": "1", "R": 5}, {"Id": "2", "R": 4}, {"Id": "3", "R": 2}, {"Id": "4", "R": 1}]"""

RATING_MAX_TOKENS = 2400

_ratings_adapter = TypeAdapter(list[PaperRating])


def build_rating_prompt(papers: list[PaperRecord]) -> str:
    """Rubric, worked example, the real id/title lines and the output marker."""
    lines = "\n".join(f"{paper.id}, {paper.title}" for paper in papers)
    return f"{RATING_RUBRIC}\n\n{RATING_EXAMPLE}\n\n<Input>\n{lines}\n<Output>"


def parse_ratings(response_text: str) -> list[PaperRating]:
    """Parse the model reply. The whole reply must be a JSON array of ratings.

    Raises:
        UnparsableRatingResponseError: If the reply is anything else
    """
    try:
        data = json.loads(response_text)
    except json.JSONDecodeError as e:
        raise UnparsableRatingResponseError(response_text, f"not JSON ({e.msg})") from e

    if not isinstance(data, list):
        raise UnparsableRatingResponseError(response_text, "expected a JSON array")

    try:
        return _ratings_adapter.validate_python(data)
    except ValidationError as e:
        raise UnparsableRatingResponseError(response_text, f"{e.error_count()} invalid rating entries") from e


def apply_ratings(papers: list[PaperRecord], ratings: list[PaperRating]) -> list[RatedPaper]:
    """Pair papers with ratings, best first, newest first among equals. Unrated papers get 0."""
    by_id = {rating.id.strip(): rating.rating for rating in ratings}
    rated = [RatedPaper(paper=paper, rating=by_id.get(paper.id, 0)) for paper in papers]
    return sorted(rated, key=lambda item: (item.rating, item.paper.updated), reverse=True)


class RatingService:
    """Fetches a day's papers and has the model rate them."""

    def __init__(self, papers: PaperService, llm: LLMService, top_p: float | None = None):
        self.papers = papers
        self.llm = llm
        self.top_p = top_p

    async def rate(self, category: SearchCategory, day: date) -> list[RatedPaper]:
        """Rate the papers of ``category`` submitted on ``day``.

        Raises:
            ModelCallError: If the model returns nothing
            UnparsableRatingResponseError: If the reply is not a bare rating array
        """
        papers = await self.papers.fetch_papers(category, day)
        if not papers:
            logger.info(f"No {category} papers for {day.isoformat()}")
            return []

        reply = await self.llm.complete_text(
            build_rating_prompt(papers),
            RATING_SYSTEM_PROMPT,
            temperature=0.0,
            top_p=self.top_p,
            max_tokens=RATING_MAX_TOKENS,
        )
        if not reply:
            raise ModelCallError("No completions found.")

        ratings = parse_ratings(reply)
        logger.info(f"Received {len(ratings)} rating(s) for {len(papers)} paper(s)")
        return apply_ratings(papers, ratings)
