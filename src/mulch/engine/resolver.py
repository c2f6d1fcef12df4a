"""Map a user-supplied identifier to a record position.

Three shapes are accepted: a full id (``mx-1a2b3c``), a bare hex
fragment (``1a2b3c``), or a prefix of either (``mx-1a``, ``1a``).  An
exact full-id match wins; otherwise the fragment must prefix exactly one
id.  ``resolve_identifier`` additionally accepts a legacy 1-based
position so that both addressing modes keep working side by side.
"""

from __future__ import annotations

from mulch.errors import MulchError
from mulch.models.identity import ID_PREFIX
from mulch.models.records import AnyRecord


class AmbiguousIdentifierError(MulchError):
    """Raised when a prefix matches more than one record."""

    error_code = "ambiguous_identifier"

    def __init__(self, identifier: str, candidates: list[str]) -> None:
        self.identifier = identifier
        self.candidates = candidates
        super().__init__(
            f'Ambiguous identifier "{identifier}" matches {len(candidates)} records: '
            f"{', '.join(candidates)}. Use more characters to disambiguate."
        )


class RecordNotFoundError(MulchError):
    """Raised when no record matches an identifier or position."""

    error_code = "record_not_found"

    def __init__(self, identifier: str, message: str | None = None) -> None:
        self.identifier = identifier
        super().__init__(
            message
            or f'Record "{identifier}" not found. List the domain\'s records to see valid ids.'
        )


def _fragment(identifier: str) -> str:
    text = identifier.strip().lower()
    if text.startswith(ID_PREFIX):
        text = text[len(ID_PREFIX) :]
    return text


def resolve_record_id(records: list[AnyRecord], identifier: str) -> int:
    """Return the 0-based index of the record *identifier* designates."""
    fragment = _fragment(identifier)
    if not fragment:
        raise RecordNotFoundError(identifier, "Identifier must not be empty.")

    full_id = f"{ID_PREFIX}{fragment}"
    for index, record in enumerate(records):
        if record.id == full_id:
            return index

    matches = [
        index
        for index, record in enumerate(records)
        if record.id and record.id.startswith(full_id)
    ]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise AmbiguousIdentifierError(
            identifier, [records[index].id or "" for index in matches]
        )
    raise RecordNotFoundError(identifier)


def resolve_identifier(records: list[AnyRecord], identifier: str) -> int:
    """Resolve an id, id prefix or legacy 1-based position to a 0-based index.

    A plain decimal number is read as a position; anything else goes to
    ``resolve_record_id``.
    """
    text = identifier.strip()
    if text.isdecimal():
        position = int(text)
        if position < 1:
            raise RecordNotFoundError(
                identifier, "Position must be a positive integer (1-based index)."
            )
        if position > len(records):
            raise RecordNotFoundError(
                identifier,
                f"Index {position} out of range. Domain has {len(records)} record(s).",
            )
        return position - 1
    return resolve_record_id(records, text)
