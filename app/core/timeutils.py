from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.

    SQLite hands TIMESTAMP columns back without tzinfo; those values were
    written as UTC, so they are tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# datetime field that always serializes with a UTC offset
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
