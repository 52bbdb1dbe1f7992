"""
Base Record Model

Every persisted entity derives from `Record`:
- `id` is generated at construction and FROZEN: assigning to it raises
- identity is independent of field values (two records with equal fields
  but different ids are different records)
- assignments are validated, so a mutator cannot sneak in a bad value

DESIGN DECISION: id generation is an injectable function (`IdFactory`).
Repositories carry one, so tests can supply deterministic ids.
"""

from datetime import datetime
from typing import Annotated, Callable, Optional
from uuid import UUID, uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


IdFactory = Callable[[], UUID]


def default_id_factory() -> UUID:
    return uuid4()


def local_now() -> datetime:
    """Device-local wall clock time (naive), used for record timestamps."""
    return datetime.now()


def to_local_naive(value: datetime) -> datetime:
    """Aware datetimes become naive local time; naive ones pass through."""
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# Every stored timestamp is naive local time, so any two compare safely
LocalDateTime = Annotated[datetime, AfterValidator(to_local_naive)]


class Record(BaseModel):
    """Base class for anything a repository stores."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: UUID = Field(
        default_factory=default_id_factory,
        frozen=True,
        description="Immutable unique identifier"
    )


class ValidationIssue(BaseModel):
    """A single validation issue found on a record."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'dangling_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    value: Optional[str] = Field(
        default=None,
        description="Offending value, stringified"
    )
