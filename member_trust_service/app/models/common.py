import datetime
import uuid
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)

def new_id() -> str:
    return str(uuid.uuid4().hex)

def as_utc(value: datetime.datetime) -> datetime.datetime:
    # Mongo hands back naive datetimes unless the client is tz_aware; they are UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)

def to_storage_datetime(value: datetime.datetime) -> datetime.datetime:
    """Normalizes a datetime for use in a store query: naive, UTC, millisecond precision (BSON)."""
    value = as_utc(value).replace(tzinfo=None)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


UtcDatetime = Annotated[datetime.datetime, AfterValidator(as_utc)]


class SideEffectOutcome(BaseModel):
    """Result of a side effect that must never fail the operation that triggered it."""
    name: str
    succeeded: bool
    skipped: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, name: str) -> "SideEffectOutcome":
        return cls(name=name, succeeded=True)

    @classmethod
    def skip(cls, name: str) -> "SideEffectOutcome":
        return cls(name=name, succeeded=False, skipped=True)

    @classmethod
    def failed(cls, name: str, error: str) -> "SideEffectOutcome":
        return cls(name=name, succeeded=False, error=error)
