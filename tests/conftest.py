import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conda_ca_sync.certs.copier import DirectCopier
from conda_ca_sync.certs.replacer import BundleReplacer
from conda_ca_sync.config import SyncConfig
from conda_ca_sync.logging import OutcomeLog, parse_outcome_line

ORIGINAL_BUNDLE = "-----BEGIN CERTIFICATE-----\nconda-shipped\n-----END CERTIFICATE-----\n"
CORPORATE_BUNDLE = "-----BEGIN CERTIFICATE-----\ncorporate-ca\n-----END CERTIFICATE-----\n"


class SimulatedTime:
    """Injectable clock and sleep that advance instantly.

    Actions registered with ``at`` run once the simulated time reaches them.
    """

    def __init__(self):
        self.start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.elapsed = 0.0
        self.sleeps = []
        self._scheduled = []

    def at(self, seconds, action):
        self._scheduled.append((seconds, action))

    def clock(self) -> datetime:
        return self.start + timedelta(seconds=self.elapsed)

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.elapsed += seconds
        due = [a for s, a in self._scheduled if s <= self.elapsed]
        self._scheduled = [(s, a) for s, a in self._scheduled if s > self.elapsed]
        for action in due:
            action()


class FakeWatcher:
    def __init__(self, root: Path, events):
        self.root = root
        self._events = list(events)
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    async def events(self):
        for event in self._events:
            yield event


async def wait_until(predicate, timeout: float = 2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


def make_env(root: Path, name: str, with_bundle: bool = True, bundle_name: str = "cacert.pem") -> Path:
    env = root / name
    env.mkdir(parents=True)
    if with_bundle:
        populate_bundle(env, bundle_name)
    return env


def populate_bundle(env: Path, bundle_name: str = "cacert.pem") -> Path:
    ssl = env / "ssl"
    ssl.mkdir(parents=True, exist_ok=True)
    bundle = ssl / bundle_name
    bundle.write_text(ORIGINAL_BUNDLE)
    return bundle


def read_log(path: Path):
    return [parse_outcome_line(line) for line in path.read_text().splitlines()]


def tree_snapshot(root: Path):
    return sorted(
        (str(p.relative_to(root)), p.stat().st_mtime_ns)
        for p in [root, *root.rglob("*")]
    )


@pytest.fixture
def source_bundle(tmp_path: Path) -> Path:
    path = tmp_path / "system" / "ca-certificates.crt"
    path.parent.mkdir()
    path.write_text(CORPORATE_BUNDLE)
    return path


@pytest.fixture
def envs_root(tmp_path: Path) -> Path:
    root = tmp_path / "envs"
    root.mkdir()
    return root


@pytest.fixture
def config(tmp_path: Path, source_bundle: Path, envs_root: Path) -> SyncConfig:
    return SyncConfig(
        target_bundle_path=source_bundle,
        environments_root=envs_root,
        log_sink=tmp_path / "logs" / "monitor.log",
        use_sudo=False,
    )


@pytest.fixture
def replacer(config: SyncConfig) -> BundleReplacer:
    return BundleReplacer(config, DirectCopier())


@pytest.fixture
def outcome_log(config: SyncConfig):
    log = OutcomeLog(config.log_sink)
    try:
        yield log
    finally:
        log.close()


@pytest.fixture
def simulated_time() -> SimulatedTime:
    return SimulatedTime()
