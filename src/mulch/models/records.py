"""Pydantic models for the six expertise record variants.

A record is a tagged union discriminated by ``type``.  Every variant
shares the lifecycle fields (classification, timestamp, links) and adds
its own required text fields.  One field per variant is the *key
field*: it alone decides identity and duplicate detection.

Unknown keys found on disk are kept (``extra="allow"``) so a file
written by a newer release survives a read/modify/write cycle intact.
"""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
from enum import Enum
from typing import Annotated
from typing import Literal
from typing import Union
from typing import assert_never

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RecordType(str, Enum):
    """Discriminant of the record union."""

    convention = "convention"
    pattern = "pattern"
    failure = "failure"
    decision = "decision"
    reference = "reference"
    guide = "guide"


class Classification(str, Enum):
    """Expected lifespan tier of a record."""

    foundational = "foundational"
    tactical = "tactical"
    observational = "observational"


# Variants whose key field is a title-like handle; a duplicate on these
# is an update of the existing record rather than a repeat of it.
NAMED_TYPES: frozenset[RecordType] = frozenset(
    {
        RecordType.pattern,
        RecordType.decision,
        RecordType.reference,
        RecordType.guide,
    }
)


RECORD_ID_PATTERN = r"^mx-[0-9a-f]{6}$"


def utc_timestamp() -> str:
    """Current time as ISO-8601 with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


class Evidence(BaseModel):
    """Where a record came from."""

    model_config = {"extra": "allow"}

    commit: str | None = None
    date: str | None = None
    issue: str | None = None
    file: str | None = None
    bead: str | None = None


class RecordBase(BaseModel):
    """Fields carried by every record variant."""

    model_config = {"extra": "allow"}

    classification: Classification = Field(
        description="Lifespan tier: foundational, tactical or observational.",
    )
    recorded_at: str = Field(
        default_factory=utc_timestamp,
        description="ISO-8601 timestamp of when the record was written.",
    )
    evidence: Evidence | None = Field(
        default=None,
        description="Optional provenance (commit, issue, file, ...).",
    )
    tags: list[str] | None = Field(
        default=None,
        description="Free-form labels, order preserved as given.",
    )
    relates_to: list[str] | None = Field(
        default=None,
        description="Linked ids, bare or qualified as <domain>:<id>.",
    )
    supersedes: list[str] | None = Field(
        default=None,
        description="Ids of records this one replaces.",
    )
    id: str | None = Field(
        default=None,
        pattern=RECORD_ID_PATTERN,
        description="Content-derived identifier, mx- plus six hex digits.",
    )

    @property
    def record_type(self) -> RecordType:
        return RecordType(self.type)  # type: ignore[attr-defined]

    def recorded_at_datetime(self) -> datetime | None:
        """Parse ``recorded_at``; ``None`` when it is not a valid timestamp."""
        try:
            parsed = datetime.fromisoformat(self.recorded_at)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


class ConventionRecord(RecordBase):
    """A rule the codebase follows."""

    type: Literal["convention"] = "convention"
    content: str = Field(description="The convention itself.")


class PatternRecord(RecordBase):
    """A recurring, named way of doing something."""

    type: Literal["pattern"] = "pattern"
    name: str = Field(description="Short name of the pattern.")
    description: str = Field(description="How and when the pattern applies.")
    files: list[str] | None = Field(
        default=None,
        description="Files that exemplify the pattern.",
    )


class FailureRecord(RecordBase):
    """Something that went wrong, and how it was fixed."""

    type: Literal["failure"] = "failure"
    description: str = Field(description="What failed.")
    resolution: str = Field(description="How it was resolved.")


class DecisionRecord(RecordBase):
    """An architectural or process decision."""

    type: Literal["decision"] = "decision"
    title: str = Field(description="Decision headline.")
    rationale: str = Field(description="Why it was decided.")
    date: str | None = Field(default=None, description="When it was decided.")


class ReferenceRecord(RecordBase):
    """A pointer to a key file, document or resource."""

    type: Literal["reference"] = "reference"
    name: str = Field(description="Name of the reference.")
    description: str = Field(description="What it is and why it matters.")
    files: list[str] | None = Field(
        default=None,
        description="Files the reference points at.",
    )


class GuideRecord(RecordBase):
    """A step-by-step procedure."""

    type: Literal["guide"] = "guide"
    name: str = Field(description="Name of the guide.")
    description: str = Field(description="The procedure.")


# ---------------------------------------------------------------------------
# Union type for generic dispatch
# ---------------------------------------------------------------------------

ExpertiseRecord = Annotated[
    Union[
        ConventionRecord,
        PatternRecord,
        FailureRecord,
        DecisionRecord,
        ReferenceRecord,
        GuideRecord,
    ],
    Field(discriminator="type"),
]

AnyRecord = (
    ConventionRecord
    | PatternRecord
    | FailureRecord
    | DecisionRecord
    | ReferenceRecord
    | GuideRecord
)


def key_value(record: AnyRecord) -> str:
    """Return the value of the record's key field."""
    if isinstance(record, ConventionRecord):
        return record.content
    if isinstance(record, PatternRecord):
        return record.name
    if isinstance(record, FailureRecord):
        return record.description
    if isinstance(record, DecisionRecord):
        return record.title
    if isinstance(record, ReferenceRecord):
        return record.name
    if isinstance(record, GuideRecord):
        return record.name
    assert_never(record)
