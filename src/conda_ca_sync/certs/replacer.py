"""Bundle replacement primitive."""
import stat
from pathlib import Path

from conda_ca_sync.certs.copier import PrivilegedCopier
from conda_ca_sync.config import SyncConfig
from conda_ca_sync.errors import BundleCopyError
from conda_ca_sync.logging import get_logger
from conda_ca_sync.types import ReplaceResult, backup_target, bundle_target

logger = get_logger(__name__)


async def replace_bundle(
    env_root: Path,
    source_bundle: Path,
    bundle_file_name: str,
    copier: PrivilegedCopier,
) -> ReplaceResult:
    """Back up and overwrite the CA bundle of one environment.

    Returns ``existed=False`` without touching the filesystem when the
    environment has no bundle (yet). Otherwise the current bundle is copied
    to ``ssl/backup_<name>`` first, then the source bundle is copied over it.
    Copy failures, and a bundle that cannot be inspected, raise
    BundleCopyError.
    """
    target = bundle_target(env_root, bundle_file_name)
    try:
        mode = target.stat().st_mode
    except (FileNotFoundError, NotADirectoryError):
        return ReplaceResult(existed=False, target=target)
    except OSError as e:
        raise BundleCopyError(target, target, e.strerror or str(e)) from e
    if not stat.S_ISREG(mode):
        return ReplaceResult(existed=False, target=target)

    backup = backup_target(env_root, bundle_file_name)
    await copier.copy(target, backup)
    await copier.copy(Path(source_bundle), target)

    logger.debug(
        {"event": "bundle_replaced", "target": str(target), "backup": str(backup)}
    )
    return ReplaceResult(existed=True, target=target, backup=backup)


class BundleReplacer:
    """replace_bundle bound to a configured source bundle and file name"""

    def __init__(self, config: SyncConfig, copier: PrivilegedCopier):
        self.source_bundle = config.target_bundle_path
        self.bundle_file_name = config.bundle_file_name
        self.copier = copier

    async def replace(self, env_root: Path) -> ReplaceResult:
        return await replace_bundle(
            env_root, self.source_bundle, self.bundle_file_name, self.copier
        )
