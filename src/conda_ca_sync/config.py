"""Runtime configuration."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import appdirs

from conda_ca_sync.errors import ConfigError

APP_NAME = "conda-ca-sync"

DEFAULT_TARGET_BUNDLE = Path("/etc/ssl/certs/ca-certificates.crt")
DEFAULT_BUNDLE_NAME = "cacert.pem"
DEFAULT_ENVS_ROOT = Path("/tmp/cloudos_user_envs")
DEFAULT_WAIT_SECONDS = 60

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def default_log_sink() -> Path:
    return Path(appdirs.user_log_dir(APP_NAME)) / "monitor.log"


@dataclass(frozen=True)
class SyncConfig:
    """Settings shared by the monitor, bulk replacement and hook installation"""

    target_bundle_path: Path = DEFAULT_TARGET_BUNDLE
    bundle_file_name: str = DEFAULT_BUNDLE_NAME
    environments_root: Path = DEFAULT_ENVS_ROOT
    wait_seconds: int = DEFAULT_WAIT_SECONDS
    log_sink: Path = field(default_factory=default_log_sink)
    base_env_path: Optional[Path] = None
    use_sudo: bool = True

    def __post_init__(self):
        if self.wait_seconds < 0:
            raise ConfigError("wait_seconds", self.wait_seconds, "must be >= 0")
        if not self.bundle_file_name or "/" in self.bundle_file_name:
            raise ConfigError(
                "bundle_file_name", self.bundle_file_name, "must be a plain file name"
            )


@dataclass(frozen=True)
class HookConfig:
    """Target environment and scripts for hook installation"""

    env_name: str
    activation_script: Optional[Path] = None
    deactivation_script: Optional[Path] = None


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ConfigError(key, raw, "expected a boolean")


def _parse_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(key, raw, "expected an integer") from None


def load_config(environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """Build a SyncConfig from CONDA_CA_* environment variables."""
    env = os.environ if environ is None else environ
    kwargs = {}

    if raw := env.get("CONDA_CA_TARGET_BUNDLE"):
        kwargs["target_bundle_path"] = Path(raw)
    if raw := env.get("CONDA_CA_BUNDLE_NAME"):
        kwargs["bundle_file_name"] = raw
    if raw := env.get("CONDA_CA_ENVS_ROOT"):
        kwargs["environments_root"] = Path(raw)
    if raw := env.get("CONDA_CA_WAIT_SECONDS"):
        kwargs["wait_seconds"] = _parse_int("CONDA_CA_WAIT_SECONDS", raw)
    if raw := env.get("CONDA_CA_LOG_SINK"):
        kwargs["log_sink"] = Path(raw)
    if raw := env.get("CONDA_CA_USE_SUDO"):
        kwargs["use_sudo"] = _parse_bool("CONDA_CA_USE_SUDO", raw)
    if raw := env.get("CONDA_PREFIX"):
        kwargs["base_env_path"] = Path(raw)

    return SyncConfig(**kwargs)


def load_hook_config(environ: Optional[Mapping[str, str]] = None) -> HookConfig:
    """Build a HookConfig from CONDA_CA_HOOK_* environment variables."""
    env = os.environ if environ is None else environ

    env_name = env.get("CONDA_CA_HOOK_ENV", "")
    if not env_name:
        raise ConfigError("CONDA_CA_HOOK_ENV", env_name, "environment name required")

    activation = env.get("CONDA_CA_ACTIVATION_SCRIPT")
    deactivation = env.get("CONDA_CA_DEACTIVATION_SCRIPT")
    return HookConfig(
        env_name=env_name,
        activation_script=Path(activation) if activation else None,
        deactivation_script=Path(deactivation) if deactivation else None,
    )
