"""Activation and deactivation hook scripts."""
from pathlib import Path
from typing import List, Optional

from conda_ca_sync.certs.copier import DirectCopier, PrivilegedCopier
from conda_ca_sync.logging import get_logger

logger = get_logger(__name__)

ACTIVATE_DIR = Path("etc", "conda", "activate.d")
DEACTIVATE_DIR = Path("etc", "conda", "deactivate.d")


async def install_hooks(
    env_root: Path,
    activation_script: Optional[Path] = None,
    deactivation_script: Optional[Path] = None,
    copier: Optional[PrivilegedCopier] = None,
) -> List[Path]:
    """Copy the given scripts into the env's activate.d / deactivate.d folders.

    Scripts keep their file names. Missing folders are created; contents and
    permissions of the scripts are not checked.
    """
    copier = copier or DirectCopier()
    installed = []
    for script, subdir in (
        (activation_script, ACTIVATE_DIR),
        (deactivation_script, DEACTIVATE_DIR),
    ):
        if script is None:
            continue
        script = Path(script)
        dest = Path(env_root) / subdir / script.name
        await copier.make_dirs(dest.parent)
        await copier.copy(script, dest)
        logger.info({"event": "hook_installed", "script": script.name, "dest": str(dest)})
        installed.append(dest)

    return installed
