import json
from datetime import datetime, timezone

import pytest
import structlog

from conda_ca_sync.logging import (
    CompactJSONRenderer,
    OutcomeLineRenderer,
    OutcomeLog,
    configure_logging,
    get_logger,
    parse_outcome_line,
    unpack_event,
)
from conda_ca_sync.types import OutcomeKind, ReplacementOutcome


def test_compact_json_renderer():
    """Test JSON log formatting"""
    output = CompactJSONRenderer()(
        None, "info", {"event": "watch_started", "level": "info", "timestamp": "t", "root": "/envs"}
    )

    data = json.loads(output)
    assert data == {"ts": "t", "lvl": "info", "msg": "watch_started", "data": {"root": "/envs"}}


def test_unpack_event_dict():
    event_dict = unpack_event(None, "info", {"event": {"event": "bundle_replaced", "target": "x"}})

    assert event_dict == {"event": "bundle_replaced", "target": "x"}


def test_outcome_line_renderer():
    line = OutcomeLineRenderer()(
        None,
        "msg",
        {
            "event": "replaced",
            "dir": "py311",
            "message": "cacert.pem\nreplaced",
            "timestamp": "2024-01-01T00:00:00+00:00",
        },
    )

    assert line == "2024-01-01T00:00:00+00:00 replaced py311 cacert.pem replaced"


def test_outcome_log_record(tmp_path):
    sink = tmp_path / "nested" / "monitor.log"
    outcome = ReplacementOutcome(
        kind=OutcomeKind.FAILED,
        env_name="py311",
        message="cacert.pem replacement failed",
        timestamp=datetime(2024, 1, 1, 12, tzinfo=timezone.utc),
        error="Permission denied",
    )

    with OutcomeLog(sink) as log:
        log.record(outcome)

    assert sink.read_text() == (
        "2024-01-01T12:00:00+00:00 failed py311 "
        "cacert.pem replacement failed error: Permission denied\n"
    )


def test_outcome_log_appends(tmp_path):
    sink = tmp_path / "monitor.log"
    sink.write_text("2024-01-01T00:00:00+00:00 observed old created in /envs\n")

    with OutcomeLog(sink) as log:
        log.note("waiting", "new", "checking again in 60 seconds")

    records = [parse_outcome_line(line) for line in sink.read_text().splitlines()]
    assert [r["dir"] for r in records] == ["old", "new"]


@pytest.mark.parametrize(
    "line",
    [
        "",
        "2024-01-01T00:00:00+00:00 replaced",
        "2024-01-01T00:00:00+00:00 exploded py311 message",
        "yesterday replaced py311 message",
    ],
)
def test_parse_outcome_line_rejects_malformed(line):
    with pytest.raises(ValueError):
        parse_outcome_line(line)


def test_get_logger():
    """Test logger retrieval"""
    configure_logging()
    logger = get_logger("test_module")
    assert hasattr(logger, "info")


def test_configure_logging():
    """Test logging configuration"""
    configure_logging()

    assert structlog.is_configured()
    config = structlog.get_config()
    assert isinstance(config["logger_factory"], structlog.stdlib.LoggerFactory)
    assert config["wrapper_class"] is structlog.stdlib.BoundLogger
