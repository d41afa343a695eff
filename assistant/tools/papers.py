"""Paper fetching and summarization tools."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from assistant.models.papers import SearchCategory
from assistant.services.papers import PaperService, format_paper_list
from assistant.tools.base import ToolDefinition


class FetchPapersInput(BaseModel):
    """Input schema for the paper listing tool."""

    search_query: Literal["QuantumPhysics", "QuantumComputing"] = Field(
        ...,
        alias="searchQuery",
        description="Category of papers to search for",
    )
    day: date = Field(
        ...,
        alias="date",
        description="Date of publishing of the papers",
    )

    model_config = ConfigDict(populate_by_name=True)


class SummarizePaperInput(BaseModel):
    """Input schema for the paper summary tool."""

    paper_id: str = Field(
        ...,
        alias="paperId",
        min_length=1,
        description="ID of the paper to summarize",
        examples=["2403.01234"],
    )

    model_config = ConfigDict(populate_by_name=True)


def create_fetch_papers_tool(paper_service: PaperService) -> ToolDefinition:
    async def fetch_papers_handler(params: FetchPapersInput) -> str:
        papers = await paper_service.fetch_papers(SearchCategory(params.search_query), params.day)
        return format_paper_list(papers)

    return ToolDefinition(
        name="FetchPapers",
        description=(
            "Fetches quantum physics or quantum computing papers from ArXiv for a given date. "
            "Returns one line per paper with its ID, update time, title, authors and PDF link."
        ),
        input_schema_class=FetchPapersInput,
        handler=fetch_papers_handler,
    )


def create_summarize_paper_tool(paper_service: PaperService) -> ToolDefinition:
    async def summarize_paper_handler(params: SummarizePaperInput) -> str:
        return await paper_service.summarize_paper(params.paper_id)

    return ToolDefinition(
        name="SummarizePaper",
        description=(
            "Summarize a paper. The paper ID must be provided explicitly by the user; never invent one. "
            "Returns a 1-2 sentence plain text summary, or a message saying the paper was not found."
        ),
        input_schema_class=SummarizePaperInput,
        handler=summarize_paper_handler,
    )
