"""Core type definitions"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

SSL_DIR = "ssl"
BACKUP_PREFIX = "backup_"


class OutcomeKind(str, Enum):
    """Terminal result of one replacement sequence"""

    REPLACED = "replaced"
    NOT_FOUND_AFTER_WAIT = "not_found_after_wait"
    # Declared for a future "skip identical bundle" policy; never produced yet.
    ALREADY_UP_TO_DATE = "already_up_to_date"
    MISSING = "missing"
    FAILED = "failed"


class CoordinationState(str, Enum):
    """Progress of a single watch event through the coordinator"""

    OBSERVED = "observed"
    IMMEDIATE_CHECK_FAILED = "immediate_check_failed"
    WAITING = "waiting"
    FINAL_CHECK_SUCCEEDED = "final_check_succeeded"
    FINAL_CHECK_FAILED = "final_check_failed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class EnvironmentRoot:
    """One isolated conda environment"""

    name: str
    root_path: Path

    @classmethod
    def from_path(cls, path: Path) -> "EnvironmentRoot":
        path = Path(path)
        return cls(name=path.name, root_path=path)


@dataclass(frozen=True)
class WatchEvent:
    """Creation notification for a direct child of the watched root"""

    parent: Path
    name: str

    @property
    def path(self) -> Path:
        return self.parent / self.name


@dataclass(frozen=True)
class ReplaceResult:
    existed: bool
    target: Path
    backup: Optional[Path] = None


@dataclass(frozen=True)
class ReplacementOutcome:
    """Append-only record of one replacement attempt"""

    kind: OutcomeKind
    env_name: str
    message: str
    timestamp: datetime = field(default_factory=utc_now)
    error: Optional[str] = None


def bundle_target(env_root: Path, bundle_file_name: str) -> Path:
    """Path where an environment keeps its CA bundle."""
    return Path(env_root) / SSL_DIR / bundle_file_name


def backup_target(env_root: Path, bundle_file_name: str) -> Path:
    return Path(env_root) / SSL_DIR / f"{BACKUP_PREFIX}{bundle_file_name}"
