"""Store domain — domain-file locking, line codec and atomic replace."""

from mulch.store.codec import MalformedRecordError
from mulch.store.codec import parse_record
from mulch.store.codec import record_to_dict
from mulch.store.codec import serialize_record
from mulch.store.codec import validate_record
from mulch.store.expertise import create_expertise_file
from mulch.store.expertise import get_file_mod_time
from mulch.store.expertise import read_expertise_file
from mulch.store.expertise import serialize_records
from mulch.store.expertise import write_expertise_file
from mulch.store.lock import file_lock
from mulch.store.lock import lock_path_for
from mulch.store.lock import LockTimeoutError
from mulch.store.lock import with_file_lock

__all__ = [
    "LockTimeoutError",
    "MalformedRecordError",
    "create_expertise_file",
    "file_lock",
    "get_file_mod_time",
    "lock_path_for",
    "parse_record",
    "read_expertise_file",
    "record_to_dict",
    "serialize_record",
    "serialize_records",
    "validate_record",
    "with_file_lock",
    "write_expertise_file",
]
