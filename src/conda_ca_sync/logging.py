"""Logging configuration and the outcome log sink."""
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import EventDict, Processor

from conda_ca_sync.errors import SinkError
from conda_ca_sync.types import OutcomeKind, ReplacementOutcome, utc_now

STDERR_LOG_LEVEL = "INFO"
IGNORED_LOGGERS = [
    "watchdog",
    "asyncio",
]

OBSERVED = "observed"
WAITING = "waiting"
PROGRESS_KINDS = (OBSERVED, WAITING)
LINE_KINDS = frozenset(PROGRESS_KINDS) | {kind.value for kind in OutcomeKind}


def add_timestamp(_, __, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to the event dict."""
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = utc_now().isoformat()
    return event_dict


def level_filter(logger: Any, name: str, event_dict: EventDict) -> EventDict:
    """Filter log records based on level."""
    try:
        if not any(ignored in logger.name for ignored in IGNORED_LOGGERS):
            level_no = getattr(logging, event_dict.get("level", "NOTSET").upper())
            min_level = getattr(logging, STDERR_LOG_LEVEL)
            if level_no >= min_level:
                return event_dict
        raise structlog.DropEvent
    except AttributeError:
        return event_dict


def unpack_event(_, __, event_dict: EventDict) -> EventDict:
    """Allow ``logger.info({"event": ..., **fields})`` calls."""
    event = event_dict.get("event")
    if isinstance(event, dict):
        event_dict.update(event)
    return event_dict


class CompactJSONRenderer:
    """Single-line JSON renderer with minimal output."""

    def __call__(self, _: Any, __: str, event_dict: EventDict) -> str:
        items = {
            "ts": event_dict.pop("timestamp", None),
            "lvl": event_dict.pop("level", "???"),
            "msg": event_dict.pop("event", ""),
        }
        if other := {k: v for k, v in event_dict.items()}:
            items["data"] = other
        return json.dumps(items, separators=(",", ":"), default=str)


def configure_logging(level: str = STDERR_LOG_LEVEL) -> None:
    """Configure structured diagnostics on stderr.

    A console renderer is used when stderr is a terminal, compact JSON
    otherwise (daemonized monitor, redirected output). Nothing is written
    to stdout.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level),
    )

    json_processors: List[Processor] = [
        structlog.stdlib.add_log_level,
        level_filter,
        unpack_event,
        add_timestamp,
        structlog.processors.format_exc_info,
        CompactJSONRenderer(),
    ]

    console_processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        unpack_event,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ]

    structlog.configure(
        processors=console_processors if sys.stderr.isatty() else json_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class OutcomeLineRenderer:
    """Render ``<timestamp> <event-kind> <dir> <message>`` lines."""

    def __call__(self, _: Any, __: str, event_dict: EventDict) -> str:
        timestamp = event_dict.pop("timestamp", None) or utc_now().isoformat(
            timespec="seconds"
        )
        kind = event_dict.pop("event")
        env_name = "_".join(str(event_dict.pop("dir", "-")).split()) or "-"
        message = " ".join(str(event_dict.pop("message", "")).split())
        return f"{timestamp} {kind} {env_name} {message}"


class OutcomeLog:
    """Append-only sink for replacement outcomes.

    Each record is one line written under the WriteLogger lock, so
    concurrent writers never interleave partial lines.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = self.path.open("a", encoding="utf-8")
        except OSError as e:
            raise SinkError(self.path, e.strerror or str(e)) from e
        self._logger = structlog.wrap_logger(
            structlog.WriteLogger(self._file),
            processors=[OutcomeLineRenderer()],
            wrapper_class=structlog.BoundLogger,
            context_class=dict,
        )

    def note(
        self, kind: str, env_name: str, message: str, timestamp: Optional[datetime] = None
    ) -> None:
        """Write a progress line for an environment."""
        ts = (timestamp or utc_now()).isoformat(timespec="seconds")
        self._logger.msg(kind, dir=env_name, message=message, timestamp=ts)

    def record(self, outcome: ReplacementOutcome) -> None:
        message = outcome.message
        if outcome.error:
            message = f"{message} error: {outcome.error}"
        self.note(outcome.kind.value, outcome.env_name, message, outcome.timestamp)

    def close(self) -> None:
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> "OutcomeLog":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def parse_outcome_line(line: str) -> Dict[str, Any]:
    """Parse one sink line back into its fields."""
    parts = line.rstrip("\n").split(" ", 3)
    if len(parts) != 4:
        raise ValueError(f"Malformed outcome line: {line!r}")

    timestamp, kind, env_name, message = parts
    if kind not in LINE_KINDS:
        raise ValueError(f"Unknown event kind {kind!r} in line: {line!r}")

    return {
        "timestamp": datetime.fromisoformat(timestamp),
        "kind": kind,
        "dir": env_name,
        "message": message,
    }
