"""Concert search and booking tools."""

import json
from typing import Literal

from pydantic import BaseModel, Field

from assistant.models.concerts import Location
from assistant.services.concerts import ConcertService
from assistant.tools.base import ToolDefinition

BOOKING_SUCCESS = "Success!"


class SearchConcertsInput(BaseModel):
    """Input schema for the concert search tool."""

    band: str = Field(..., min_length=1, description="Name of the band", examples=["Iron Maiden"])
    location: Literal["Zurich", "Basel", "Toronto", "NewYork"] = Field(
        ...,
        description="Location of the concert",
    )


class BookTicketInput(BaseModel):
    """Input schema for the ticket booking tool."""

    id: int = Field(..., description="ID of the concert to book a ticket for")


def create_search_concerts_tool(concert_service: ConcertService) -> ToolDefinition:
    async def search_concerts_handler(params: SearchConcertsInput) -> str:
        concerts = await concert_service.search(params.band, Location(params.location))
        return json.dumps([concert.as_dict() for concert in concerts])

    return ToolDefinition(
        name="SearchConcerts",
        description=(
            "Searches for concerts by a specific band name and location. Returns a list of concerts, "
            "each one with its ID, date, band, location, ticket prices and currency."
        ),
        input_schema_class=SearchConcertsInput,
        handler=search_concerts_handler,
    )


def create_book_ticket_tool(concert_service: ConcertService) -> ToolDefinition:
    async def book_ticket_handler(params: BookTicketInput) -> str:
        await concert_service.book(params.id)
        return BOOKING_SUCCESS

    return ToolDefinition(
        name="BookTicket",
        description="Books a concert ticket to a concert, using the concert's ID.",
        input_schema_class=BookTicketInput,
        handler=book_ticket_handler,
    )
