"""Paper listing and summarization service."""

from datetime import date

from assistant.clients.arxiv import ArxivClient
from assistant.models.papers import PaperRecord, SearchCategory
from assistant.services.llm import LLMService
from assistant.utils.logging import get_logger

logger = get_logger(__name__)

PAPER_NOT_FOUND = "Paper not found"
AMBIGUOUS_PAPER_ID = "More than one match for this ID!"
NO_SUMMARY = "No response available"
NO_PAPERS = "No papers found."

SUMMARY_SYSTEM_PROMPT = (
    "You are a summarization engine for ArXiv papers. You will take in input in the form of paper title and "
    "abstract, and summarize them in a digestible 1-2 sentence format. Each summary should be a simple, plain "
    "text, separate paragraph."
)
SUMMARY_MAX_TOKENS = 400


def build_summary_prompt(paper: PaperRecord) -> str:
    """Title and abstract payload for the summarization call."""
    return f"Title: {paper.title}\nAbstract: {paper.summary}"


def format_paper_line(paper: PaperRecord) -> str:
    return f"{paper.id} | {paper.updated.isoformat()} | {paper.title} | {paper.authors_display} | {paper.pdf_link or ''}"


def format_paper_list(papers: list[PaperRecord]) -> str:
    """One line per paper, in the order received."""
    if not papers:
        return NO_PAPERS
    return "\n".join(format_paper_line(paper) for paper in papers)


class PaperService:
    """Fetches papers and summarizes them with the model."""

    def __init__(self, feed: ArxivClient, llm: LLMService):
        self.feed = feed
        self.llm = llm

    async def fetch_papers(self, category: SearchCategory, day: date) -> list[PaperRecord]:
        return await self.feed.fetch_by_query(category, day)

    async def summarize_paper(self, paper_id: str) -> str:
        """Summarize one paper by id.

        Unknown and ambiguous ids are reported as plain text results so the
        model can relay them to the user.
        """
        papers = await self.feed.fetch_by_id(paper_id.strip())

        if not papers:
            return PAPER_NOT_FOUND
        if len(papers) > 1:
            logger.info(f"Paper id {paper_id} matched {len(papers)} records")
            return AMBIGUOUS_PAPER_ID

        summary = await self.llm.complete_text(
            build_summary_prompt(papers[0]),
            SUMMARY_SYSTEM_PROMPT,
            temperature=0.0,
            max_tokens=SUMMARY_MAX_TOKENS,
        )
        return summary or NO_SUMMARY
