"""Error handling for conda-ca-sync."""
from pathlib import Path
from typing import Any, Dict, Optional

import structlog


def log_error(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    logger: Optional[Any] = None,
) -> None:
    """Log an error with context."""
    logger = logger or structlog.get_logger(__name__)

    error_info: Dict[str, Any] = {
        "error_type": error.__class__.__name__,
        "error_message": str(error),
    }
    if context:
        error_info["context"] = context
    if isinstance(error, CertSyncError):
        error_info["details"] = error.details

    logger.error({"event": "cert_sync_error", **error_info})


class CertSyncError(Exception):
    """Base error class for conda-ca-sync."""

    exit_code = 1

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(CertSyncError):
    """Invalid configuration value."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid value for {key}: {value!r} ({reason})",
            details={"key": key, "value": value},
        )


class PreconditionError(CertSyncError):
    """Watch backend could not be established."""

    def __init__(self, root: Path, reason: str):
        super().__init__(
            f"Cannot watch {root}: {reason}",
            details={"root": str(root), "reason": reason},
        )


class BundleCopyError(CertSyncError):
    """A copy of a bundle or hook script failed."""

    def __init__(self, src: Path, dst: Path, reason: str):
        super().__init__(
            f"Failed to copy {src} to {dst}: {reason}",
            details={"src": str(src), "dst": str(dst)},
        )


class EnvironmentNotFoundError(CertSyncError):
    """Named conda environment does not exist."""

    def __init__(self, name: str):
        super().__init__(
            f"Environment {name} not found",
            details={"env_name": name},
        )


class SinkError(CertSyncError):
    """Outcome log sink cannot be opened."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Cannot open outcome log {path}: {reason}",
            details={"path": str(path)},
        )
