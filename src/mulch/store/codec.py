"""One-record-per-line JSON codec."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError

from mulch.errors import MulchError
from mulch.models.records import AnyRecord
from mulch.models.records import ExpertiseRecord
from mulch.models.records import RecordBase

_RECORD_ADAPTER: TypeAdapter[AnyRecord] = TypeAdapter(ExpertiseRecord)

_BASE_FIELDS = [name for name in RecordBase.model_fields if name != "id"]


class MalformedRecordError(MulchError):
    """Raised when a line of a domain file is not a valid record."""

    error_code = "malformed_record"

    def __init__(
        self,
        reason: str,
        *,
        line_no: int | None = None,
        path: str | Path | None = None,
    ) -> None:
        self.reason = reason
        self.line_no = line_no
        self.path = Path(path) if path is not None else None
        where = ""
        if path is not None:
            where = f"{path}:{line_no}: " if line_no is not None else f"{path}: "
        elif line_no is not None:
            where = f"line {line_no}: "
        super().__init__(f"{where}{reason}")


def validate_record(data: Any) -> AnyRecord:
    """Build a record from a decoded JSON object (raises ``ValidationError``)."""
    return _RECORD_ADAPTER.validate_python(data)


def _decode_line(
    line: bytes,
    *,
    line_no: int | None = None,
    path: str | Path | None = None,
) -> str:
    """UTF-8 decode one raw line, raising ``MalformedRecordError`` on bad bytes."""
    try:
        return line.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedRecordError(
            f"invalid UTF-8 ({exc.reason} at byte {exc.start})", line_no=line_no, path=path
        ) from exc


def parse_record(
    line: str | bytes,
    *,
    line_no: int | None = None,
    path: str | Path | None = None,
) -> AnyRecord:
    """Decode one line into a record."""
    if isinstance(line, bytes):
        line = _decode_line(line, line_no=line_no, path=path)
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(
            f"invalid JSON ({exc.msg})", line_no=line_no, path=path
        ) from exc
    try:
        return validate_record(data)
    except ValidationError as exc:
        err = exc.errors()[0] if exc.errors() else {}
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = str(err.get("msg", "invalid record"))
        reason = f"{loc}: {msg}" if loc else msg
        raise MalformedRecordError(reason, line_no=line_no, path=path) from exc


def record_to_dict(record: AnyRecord) -> dict[str, Any]:
    """JSON-ready mapping with a stable key order and no null fields.

    Order: ``type``, the variant's own fields, the shared fields, any
    unknown keys carried over from disk, then ``id``.
    """
    data = record.model_dump(mode="json", exclude_none=True)
    declared = list(type(record).model_fields)
    own = [name for name in declared if name not in RecordBase.model_fields]

    ordered: dict[str, Any] = {}
    for name in own + _BASE_FIELDS:
        if name in data:
            ordered[name] = data.pop(name)
    record_id = data.pop("id", None)
    ordered.update(data)
    if record_id is not None:
        ordered["id"] = record_id
    return ordered


def serialize_record(record: AnyRecord) -> str:
    """Encode *record* as one compact JSON line (no trailing newline)."""
    return json.dumps(record_to_dict(record), ensure_ascii=False, separators=(",", ":"))
