"""Paper feed data models."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

_VERSION_SUFFIX = re.compile(r"v\d+$")


class SearchCategory(StrEnum):
    """Closed set of paper searches the assistant can run."""

    QUANTUM_PHYSICS = "QuantumPhysics"
    QUANTUM_COMPUTING = "QuantumComputing"

    @property
    def search_query(self) -> str:
        """arXiv search_query expression for this category."""
        if self is SearchCategory.QUANTUM_PHYSICS:
            return "cat:quant-ph"
        return 'ti:"quantum computing"'


@dataclass(frozen=True)
class PaperRecord:
    """A single paper from the feed. Immutable once fetched."""

    id: str
    title: str
    summary: str
    authors: list[str]
    updated: datetime
    published: datetime
    pdf_link: str | None = None
    primary_category: str | None = None
    categories: list[str] = field(default_factory=list)

    @property
    def authors_display(self) -> str:
        """Authors joined for display."""
        return ", ".join(self.authors)


def paper_id_from_entry_id(entry_id: str) -> str | None:
    """Extract a stable paper id from an Atom entry id URL.

    ``http://arxiv.org/abs/2403.01234v2`` becomes ``2403.01234``. Returns
    None when the URL does not point at an abstract page.
    """
    _, separator, tail = entry_id.strip().partition("/abs/")
    if not separator or not tail:
        return None
    return _VERSION_SUFFIX.sub("", tail)


class PaperRating(BaseModel):
    """One rating entry produced by the model."""

    id: str = Field(..., alias="Id")
    rating: int = Field(..., alias="R", ge=1, le=5)

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


@dataclass(frozen=True)
class RatedPaper:
    """A paper paired with the rating the model gave it (0 when unrated)."""

    paper: PaperRecord
    rating: int
