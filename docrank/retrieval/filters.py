"""Search filters shared by the semantic and keyword search paths."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass
class DateRange:
    """Inclusive creation-date range."""
    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return to_timestamp(self.start) <= to_timestamp(value) <= to_timestamp(self.end)


@dataclass
class SearchFilters:
    """Optional narrowing applied on top of the mandatory tenant scope."""
    client_company_id: Optional[str] = None
    document_type: Optional[str] = None
    date_range: Optional[DateRange] = None
    min_similarity: Optional[float] = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> float:
    """Epoch seconds; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()
