"""Project configuration and on-disk layout.

Frozen dataclasses with sensible defaults, overridable at construction
time.  ``read_config`` hydrates them from ``.mulch/mulch.config.yaml``
on every call; nothing is cached, so each operation works from a fresh
snapshot that is passed down explicitly.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

import yaml

from mulch.errors import MulchError

logger = logging.getLogger(__name__)

MULCH_DIR = ".mulch"
CONFIG_FILE = "mulch.config.yaml"
EXPERTISE_DIR = "expertise"

GITATTRIBUTES_LINE = ".mulch/expertise/*.jsonl merge=union"

MULCH_README = """# .mulch/

This directory is managed by mulch, a structured expertise layer for coding agents.

## Structure

- `mulch.config.yaml` — Configuration file
- `expertise/`        — JSONL files, one per domain

Records are written one JSON object per line. Writers take
`<domain>.jsonl.lock` while they rewrite a file; a lock left behind by a
crashed process can be deleted by hand.
"""

_DOMAIN_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$")


class ConfigError(MulchError):
    """Raised when the project config is missing or unreadable."""

    error_code = "config_error"


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LockConfig:
    """Timing of the advisory domain-file lock."""

    stale_after_seconds: float = 30.0
    retry_interval_seconds: float = 0.05
    timeout_seconds: float = 5.0


@dataclass(frozen=True)
class GovernanceConfig:
    """Per-domain record-count thresholds."""

    max_entries: int = 100
    warn_entries: int = 150
    hard_limit: int = 200


@dataclass(frozen=True)
class ShelfLifeConfig:
    """Days before a non-foundational record counts as stale."""

    tactical: int = 14
    observational: int = 30


@dataclass(frozen=True)
class MulchConfig:
    """Snapshot of ``mulch.config.yaml``."""

    version: str = "1"
    domains: tuple[str, ...] = ()
    governance: GovernanceConfig = field(default_factory=GovernanceConfig)
    shelf_life: ShelfLifeConfig = field(default_factory=ShelfLifeConfig)

    def with_domain(self, domain: str) -> MulchConfig:
        return MulchConfig(
            version=self.version,
            domains=(*self.domains, domain),
            governance=self.governance,
            shelf_life=self.shelf_life,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "domains": list(self.domains),
            "governance": asdict(self.governance),
            "classification_defaults": {"shelf_life": asdict(self.shelf_life)},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MulchConfig:
        data = data or {}
        governance = data.get("governance") or {}
        shelf_life = (data.get("classification_defaults") or {}).get("shelf_life") or {}
        defaults = GovernanceConfig()
        life_defaults = ShelfLifeConfig()
        return cls(
            version=str(data.get("version", "1")),
            domains=tuple(str(d) for d in data.get("domains") or ()),
            governance=GovernanceConfig(
                max_entries=int(governance.get("max_entries", defaults.max_entries)),
                warn_entries=int(governance.get("warn_entries", defaults.warn_entries)),
                hard_limit=int(governance.get("hard_limit", defaults.hard_limit)),
            ),
            shelf_life=ShelfLifeConfig(
                tactical=int(shelf_life.get("tactical", life_defaults.tactical)),
                observational=int(
                    shelf_life.get("observational", life_defaults.observational)
                ),
            ),
        )


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def get_mulch_dir(root: str | Path) -> Path:
    return Path(root) / MULCH_DIR


def get_config_path(root: str | Path) -> Path:
    return get_mulch_dir(root) / CONFIG_FILE


def get_expertise_dir(root: str | Path) -> Path:
    return get_mulch_dir(root) / EXPERTISE_DIR


def validate_domain_name(domain: str) -> None:
    """Reject names that are not safe as a single path component."""
    if not _DOMAIN_NAME_RE.fullmatch(domain):
        raise ValueError(
            f'Invalid domain name: "{domain}". Only alphanumeric characters, '
            "hyphens, and underscores are allowed."
        )


def get_expertise_path(domain: str, root: str | Path) -> Path:
    validate_domain_name(domain)
    return get_expertise_dir(root) / f"{domain}.jsonl"


# ---------------------------------------------------------------------------
# Read / write
# ---------------------------------------------------------------------------


def read_config(root: str | Path) -> MulchConfig:
    """Load the project config from disk."""
    path = get_config_path(root)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(
            f"No mulch config found at {path}. Initialize the project first."
        ) from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc
    if data is not None and not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level.")
    return MulchConfig.from_dict(data)


def write_config(config: MulchConfig, root: str | Path) -> None:
    path = get_config_path(root)
    path.write_text(
        yaml.safe_dump(config.to_dict(), sort_keys=False, width=10_000),
        encoding="utf-8",
    )


def init_mulch_dir(root: str | Path) -> None:
    """Create the ``.mulch`` layout; safe to run more than once.

    An existing config is never overwritten.
    """
    root = Path(root)
    get_expertise_dir(root).mkdir(parents=True, exist_ok=True)

    if not get_config_path(root).exists():
        write_config(MulchConfig(), root)
        logger.info("Wrote default config to %s", get_config_path(root))

    gitattributes = root / ".gitattributes"
    existing = gitattributes.read_text(encoding="utf-8") if gitattributes.exists() else ""
    if GITATTRIBUTES_LINE not in existing:
        separator = "\n" if existing and not existing.endswith("\n") else ""
        gitattributes.write_text(
            existing + separator + GITATTRIBUTES_LINE + "\n", encoding="utf-8"
        )

    readme = get_mulch_dir(root) / "README.md"
    if not readme.exists():
        readme.write_text(MULCH_README, encoding="utf-8")
