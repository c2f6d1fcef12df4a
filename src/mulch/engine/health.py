"""Project health checks.

Unlike the core read path, these checks tolerate malformed lines: each
line is decoded on its own and failures are reported as ``domain:line``
details instead of aborting the scan.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from datetime import timezone
from enum import Enum
from pathlib import Path

from pydantic import ValidationError

from mulch.config import ConfigError
from mulch.config import get_expertise_dir
from mulch.config import get_expertise_path
from mulch.config import get_mulch_dir
from mulch.config import GovernanceConfig
from mulch.config import MulchConfig
from mulch.config import read_config
from mulch.engine.dedup import find_duplicate
from mulch.engine.pruning import is_stale
from mulch.models.records import AnyRecord
from mulch.store.codec import validate_record

logger = logging.getLogger(__name__)


class CheckStatus(str, Enum):
    ok = "pass"
    warn = "warn"
    fail = "fail"


class GovernanceLevel(str, Enum):
    """How a domain's record count compares with the governance thresholds."""

    ok = "ok"
    approaching = "approaching"
    warn = "warn"
    over_hard_limit = "over_hard_limit"


@dataclass
class HealthCheck:
    name: str
    status: CheckStatus
    message: str
    details: list[str] = field(default_factory=list)


def governance_level(count: int, governance: GovernanceConfig) -> GovernanceLevel:
    if count >= governance.hard_limit:
        return GovernanceLevel.over_hard_limit
    if count >= governance.warn_entries:
        return GovernanceLevel.warn
    if count >= governance.max_entries:
        return GovernanceLevel.approaching
    return GovernanceLevel.ok


@dataclass
class _DomainScan:
    """Tolerant decode of one domain file."""

    domain: str
    exists: bool = False
    invalid_lines: list[tuple[int, str]] = field(default_factory=list)
    invalid_records: list[tuple[int, str]] = field(default_factory=list)
    records: list[AnyRecord] = field(default_factory=list)


def _scan_domain(domain: str, path: Path) -> _DomainScan:
    scan = _DomainScan(domain=domain)
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return scan
    scan.exists = True
    for line_no, chunk in enumerate(raw.split(b"\n"), start=1):
        if not chunk.strip():
            continue
        try:
            line = chunk.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Skipping undecodable line at %s:%d", path, line_no)
            scan.invalid_lines.append((line_no, "Invalid UTF-8"))
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping invalid JSON at %s:%d", path, line_no)
            scan.invalid_lines.append((line_no, "Invalid JSON"))
            continue
        try:
            scan.records.append(validate_record(data))
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in e['loc'])} {e['msg']}" for e in exc.errors()
            )
            scan.invalid_records.append((line_no, errors))
    return scan


def _check_integrity(scans: list[_DomainScan]) -> HealthCheck:
    details = [f"{s.domain}:{n} - {reason}" for s in scans for n, reason in s.invalid_lines]
    if details:
        return HealthCheck(
            "jsonl-integrity",
            CheckStatus.fail,
            f"{len(details)} invalid line(s) found",
            details,
        )
    return HealthCheck("jsonl-integrity", CheckStatus.ok, "All JSONL lines are valid JSON")


def _check_schema(scans: list[_DomainScan]) -> HealthCheck:
    details = [f"{s.domain}:{n} - {err}" for s in scans for n, err in s.invalid_records]
    if details:
        return HealthCheck(
            "schema-validation",
            CheckStatus.fail,
            f"{len(details)} record(s) failed validation",
            details,
        )
    return HealthCheck("schema-validation", CheckStatus.ok, "All records pass validation")


def _check_stale(scans: list[_DomainScan], config: MulchConfig, now: datetime) -> HealthCheck:
    details = [
        f"{s.domain}: stale {r.type} ({r.classification.value})"
        for s in scans
        for r in s.records
        if is_stale(r, now, config.shelf_life)
    ]
    if details:
        return HealthCheck(
            "stale-records", CheckStatus.warn, f"{len(details)} stale record(s) found", details
        )
    return HealthCheck("stale-records", CheckStatus.ok, "No stale records")


def _check_orphans(root: Path, config: MulchConfig, scans: list[_DomainScan]) -> HealthCheck:
    details: list[str] = []
    expertise_dir = get_expertise_dir(root)
    if expertise_dir.is_dir():
        for path in sorted(expertise_dir.glob("*.jsonl")):
            if path.stem not in config.domains:
                details.append(
                    f'File "{path.name}" exists but domain "{path.stem}" is not in config'
                )
    for scan in scans:
        if not scan.exists:
            details.append(f'Domain "{scan.domain}" in config but no JSONL file exists')
    if details:
        return HealthCheck(
            "orphaned-domains",
            CheckStatus.warn,
            f"{len(details)} orphaned domain issue(s)",
            details,
        )
    return HealthCheck("orphaned-domains", CheckStatus.ok, "No orphaned domains")


def _check_duplicates(scans: list[_DomainScan]) -> HealthCheck:
    details: list[str] = []
    for scan in scans:
        for i in range(1, len(scan.records)):
            match = find_duplicate(scan.records[:i], scan.records[i])
            if match is not None:
                details.append(
                    f"{scan.domain}: duplicate {scan.records[i].type} at index {i + 1} "
                    f"(matches #{match.index + 1})"
                )
    if details:
        return HealthCheck(
            "duplicates", CheckStatus.warn, f"{len(details)} duplicate record(s) found", details
        )
    return HealthCheck("duplicates", CheckStatus.ok, "No duplicates")


def _check_governance(scans: list[_DomainScan], config: MulchConfig) -> HealthCheck:
    gov = config.governance
    details: list[str] = []
    worst = CheckStatus.ok
    for scan in scans:
        count = len(scan.records)
        level = governance_level(count, gov)
        if level is GovernanceLevel.over_hard_limit:
            details.append(f"{scan.domain}: {count} records (over hard limit of {gov.hard_limit})")
            worst = CheckStatus.fail
        elif level is GovernanceLevel.warn:
            details.append(
                f"{scan.domain}: {count} records (over warn threshold of {gov.warn_entries})"
            )
        elif level is GovernanceLevel.approaching:
            details.append(
                f"{scan.domain}: {count} records (approaching limit of {gov.max_entries})"
            )
        if details and worst is CheckStatus.ok:
            worst = CheckStatus.warn
    if details:
        return HealthCheck(
            "governance", worst, f"{len(details)} domain(s) over governance thresholds", details
        )
    return HealthCheck("governance", CheckStatus.ok, "All domains within governance limits")


def run_health_checks(root: str | Path, *, now: datetime | None = None) -> list[HealthCheck]:
    """Run every check against the project at *root*.

    Returns a single failing ``config`` check when the project cannot be
    loaded, since nothing else can be inspected without it.
    """
    root = Path(root)
    if not get_mulch_dir(root).is_dir():
        return [HealthCheck("config", CheckStatus.fail, "No .mulch/ directory found")]
    try:
        config = read_config(root)
        paths = [get_expertise_path(d, root) for d in config.domains]
    except (ConfigError, ValueError) as exc:
        return [HealthCheck("config", CheckStatus.fail, f"Config error: {exc}")]

    now = now or datetime.now(timezone.utc)
    scans = [_scan_domain(d, path) for d, path in zip(config.domains, paths)]
    return [
        HealthCheck("config", CheckStatus.ok, "Config is valid"),
        _check_integrity(scans),
        _check_schema(scans),
        _check_stale(scans, config, now),
        _check_orphans(root, config, scans),
        _check_duplicates(scans),
        _check_governance(scans, config),
    ]
