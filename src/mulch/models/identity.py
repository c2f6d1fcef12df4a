"""Deterministic, content-addressed record identifiers."""

from __future__ import annotations

import hashlib

from mulch.models.records import AnyRecord
from mulch.models.records import key_value

ID_PREFIX = "mx-"


def record_key(record: AnyRecord) -> str:
    """Return the identity key, ``<type>:<key field>``."""
    return f"{record.type}:{key_value(record)}"


def generate_record_id(record: AnyRecord) -> str:
    """Return ``mx-`` plus the first six hex digits of SHA-256 of the key.

    Only the type and key field take part, so two records of the same
    type and key always share an id whatever their other fields hold.
    """
    digest = hashlib.sha256(record_key(record).encode("utf-8")).hexdigest()
    return f"{ID_PREFIX}{digest[:6]}"


def assign_missing_id(record: AnyRecord) -> AnyRecord:
    """Fill in ``record.id`` when absent; an existing id is left alone."""
    if not record.id:
        record.id = generate_record_id(record)
    return record
