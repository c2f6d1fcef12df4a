"""Read-all / replace-all access to a domain's JSONL file.

``write_expertise_file`` is the only mutation primitive: every append,
edit, delete or compaction reads the whole file, computes the new
sequence and replaces the file in one step.  The new content goes to a
temporary file in the same directory which is then renamed over the
target, so a concurrent reader sees either the old or the new content
and never a partial write.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from collections.abc import Iterable
from datetime import datetime
from datetime import timezone
from pathlib import Path

from mulch.models.identity import assign_missing_id
from mulch.models.records import AnyRecord
from mulch.store.codec import parse_record
from mulch.store.codec import serialize_record

logger = logging.getLogger(__name__)

_DEFAULT_MODE = 0o644


def read_expertise_file(path: str | Path) -> list[AnyRecord]:
    """Return every record in *path*, in file order.

    A missing file reads as an empty domain.  Blank lines are skipped;
    any other line that fails to decode or parse raises
    ``MalformedRecordError``.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return []

    records: list[AnyRecord] = []
    for line_no, line in enumerate(raw.split(b"\n"), start=1):
        if not line.strip():
            continue
        records.append(parse_record(line, line_no=line_no, path=path))
    return records


def serialize_records(records: Iterable[AnyRecord]) -> str:
    """Join records one per line, with a trailing newline unless empty."""
    lines = [serialize_record(record) for record in records]
    return "\n".join(lines) + "\n" if lines else ""


def _target_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return _DEFAULT_MODE


def write_expertise_file(path: str | Path, records: list[AnyRecord]) -> None:
    """Atomically replace the content of *path* with *records*.

    Records without an id get one assigned in place.  If the write or
    the rename fails the original file is untouched, the temporary file
    is removed on a best-effort basis and the error propagates.
    """
    path = Path(path)
    for record in records:
        assign_missing_id(record)
    content = serialize_records(records)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            os.fchmod(handle.fileno(), _target_mode(path))
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            logger.warning("Could not remove temporary file %s", tmp_name)
        raise
    logger.debug("Wrote %d record(s) to %s", len(records), path)


def create_expertise_file(path: str | Path) -> None:
    """Create an empty domain file (truncating any existing content)."""
    write_expertise_file(path, [])


def get_file_mod_time(path: str | Path) -> datetime | None:
    try:
        mtime = Path(path).stat().st_mtime
    except FileNotFoundError:
        return None
    return datetime.fromtimestamp(mtime, tz=timezone.utc)
