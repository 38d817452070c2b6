"""Locating conda environments on the host."""
import json
from pathlib import Path
from typing import List, Optional

from conda_ca_sync.certs.copier import async_subprocess_run
from conda_ca_sync.errors import CertSyncError, EnvironmentNotFoundError
from conda_ca_sync.logging import get_logger
from conda_ca_sync.types import EnvironmentRoot

logger = get_logger(__name__)

BASE_ENV_NAME = "base"


def list_environment_roots(all_envs_root: Path) -> List[EnvironmentRoot]:
    """Immediate subdirectories of ``all_envs_root``, sorted by name."""
    root = Path(all_envs_root)
    if not root.is_dir():
        logger.warning({"event": "envs_root_missing", "root": str(root)})
        return []

    return [
        EnvironmentRoot.from_path(path)
        for path in sorted(root.iterdir())
        if path.is_dir()
    ]


async def conda_info(conda: str = "conda") -> dict:
    """Return the parsed output of ``conda info --json``."""
    try:
        returncode, stdout, stderr = await async_subprocess_run(conda, "info", "--json")
    except OSError as e:
        raise CertSyncError(f"{conda} is not available: {e}") from e

    if returncode != 0:
        raise CertSyncError(
            f"{conda} info failed with code {returncode}",
            details={"stderr": stderr.strip()},
        )
    return json.loads(stdout)


def find_environment(name: str, info: dict) -> Optional[Path]:
    if name == BASE_ENV_NAME and info.get("root_prefix"):
        return Path(info["root_prefix"])

    for env_path in info.get("envs", []):
        if Path(env_path).name == name:
            return Path(env_path)
    return None


async def locate_environment(name: str, conda: str = "conda") -> EnvironmentRoot:
    """Resolve an environment name (or an absolute env path) to its root."""
    candidate = Path(name)
    if candidate.is_absolute():
        if candidate.is_dir():
            return EnvironmentRoot.from_path(candidate)
        raise EnvironmentNotFoundError(name)

    env_path = find_environment(name, await conda_info(conda))
    if env_path is None:
        raise EnvironmentNotFoundError(name)

    logger.debug({"event": "env_located", "env": name, "path": str(env_path)})
    return EnvironmentRoot(name=name, root_path=env_path)
