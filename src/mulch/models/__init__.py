"""Models domain — record variants and content-addressed identity."""

from mulch.models.identity import assign_missing_id
from mulch.models.identity import generate_record_id
from mulch.models.identity import ID_PREFIX
from mulch.models.identity import record_key
from mulch.models.records import AnyRecord
from mulch.models.records import Classification
from mulch.models.records import ConventionRecord
from mulch.models.records import DecisionRecord
from mulch.models.records import Evidence
from mulch.models.records import ExpertiseRecord
from mulch.models.records import FailureRecord
from mulch.models.records import GuideRecord
from mulch.models.records import key_value
from mulch.models.records import NAMED_TYPES
from mulch.models.records import PatternRecord
from mulch.models.records import RECORD_ID_PATTERN
from mulch.models.records import RecordBase
from mulch.models.records import RecordType
from mulch.models.records import ReferenceRecord
from mulch.models.records import utc_timestamp

__all__ = [
    # Records
    "AnyRecord",
    "Classification",
    "ConventionRecord",
    "DecisionRecord",
    "Evidence",
    "ExpertiseRecord",
    "FailureRecord",
    "GuideRecord",
    "NAMED_TYPES",
    "PatternRecord",
    "RecordBase",
    "RecordType",
    "ReferenceRecord",
    "key_value",
    "utc_timestamp",
    # Identity
    "ID_PREFIX",
    "RECORD_ID_PATTERN",
    "assign_missing_id",
    "generate_record_id",
    "record_key",
]
