"""Concert booking service interface and in-memory implementation."""

from datetime import UTC, datetime
from typing import Protocol

from assistant.exceptions import NotFoundError
from assistant.models.concerts import Concert, Location
from assistant.utils.logging import get_logger

logger = get_logger(__name__)


class ConcertService(Protocol):
    """Interface for concert search and booking."""

    async def search(self, band: str, location: Location) -> list[Concert]:
        """Find concerts by band name and location.

        Args:
            band: Band name, matched case-insensitively
            location: Exact location

        Returns:
            All matching concerts, possibly none
        """
        ...

    async def book(self, concert_id: int) -> None:
        """Book a ticket for a concert.

        Args:
            concert_id: The concert to book

        Raises:
            NotFoundError: If no concert has this id
        """
        ...


class InMemoryConcertService:
    """Concert store backed by a fixed in-memory list.

    Booking only checks that the concert exists; availability is never tracked.
    """

    def __init__(self, concerts: list[Concert] | None = None):
        """Initialize with the given concerts or the default seed data."""
        self._concerts: tuple[Concert, ...] = tuple(concerts if concerts is not None else self._create_seed_concerts())

    @property
    def concerts(self) -> list[Concert]:
        return list(self._concerts)

    async def search(self, band: str, location: Location) -> list[Concert]:
        """Find concerts by band name (case-insensitive) and location."""
        wanted = band.strip().casefold()
        matches = [
            concert for concert in self._concerts if concert.band.casefold() == wanted and concert.location == location
        ]
        logger.debug(f"Concert search for {band!r} in {location}: {len(matches)} match(es)")
        return matches

    async def book(self, concert_id: int) -> None:
        """Acknowledge a booking for an existing concert."""
        if self._find_concert(concert_id) is None:
            raise NotFoundError(concert_id, "No such concert!")
        logger.info(f"Booked a ticket for concert {concert_id}")

    def _find_concert(self, concert_id: int) -> Concert | None:
        for concert in self._concerts:
            if concert.id == concert_id:
                return concert
        return None

    def _create_seed_concerts(self) -> list[Concert]:
        return [
            Concert(
                id=1,
                timestamp=datetime(2024, 6, 11, 20, 0, tzinfo=UTC),
                band="Iron Maiden",
                location=Location.ZURICH,
                price=150,
                currency="CHF",
            ),
            Concert(
                id=2,
                timestamp=datetime(2024, 6, 12, 20, 0, tzinfo=UTC),
                band="Iron Maiden",
                location=Location.ZURICH,
                price=135,
                currency="CHF",
            ),
            Concert(
                id=3,
                timestamp=datetime(2024, 6, 14, 20, 0, tzinfo=UTC),
                band="Iron Maiden",
                location=Location.BASEL,
                price=135,
                currency="CHF",
            ),
            Concert(
                id=4,
                timestamp=datetime(2024, 8, 15, 19, 30, tzinfo=UTC),
                band="Dropkick Murphys",
                location=Location.TORONTO,
                price=145,
                currency="CAD",
            ),
            Concert(
                id=5,
                timestamp=datetime(2025, 1, 11, 19, 0, tzinfo=UTC),
                band="Green Day",
                location=Location.NEW_YORK,
                price=200,
                currency="USD",
            ),
        ]
