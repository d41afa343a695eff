"""Concert booking data models."""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any


class Location(StrEnum):
    """Cities the concert store knows about."""

    ZURICH = "Zurich"
    BASEL = "Basel"
    TORONTO = "Toronto"
    NEW_YORK = "NewYork"


@dataclass(frozen=True)
class Concert:
    """A bookable concert."""

    id: int
    timestamp: datetime
    band: str
    location: Location
    price: int
    currency: str

    def as_dict(self) -> dict[str, Any]:
        """Return the concert as a JSON-friendly dictionary."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["location"] = str(self.location)
        return data
