"""One-shot bundle replacement across existing environments."""
from pathlib import Path
from typing import List, Optional

from conda_ca_sync.certs.replacer import BundleReplacer
from conda_ca_sync.environments.discovery import BASE_ENV_NAME, list_environment_roots
from conda_ca_sync.logging import get_logger
from conda_ca_sync.types import EnvironmentRoot, OutcomeKind, ReplacementOutcome

logger = get_logger(__name__)


async def replace_all(
    base_env_path: Optional[Path],
    all_envs_root: Path,
    replacer: BundleReplacer,
) -> List[ReplacementOutcome]:
    """Replace the bundle in the base env and every env under ``all_envs_root``.

    Environments are assumed fully populated, so each one is checked once.
    A copy error aborts the run.
    """
    envs: List[EnvironmentRoot] = []
    if base_env_path is not None:
        envs.append(EnvironmentRoot(name=BASE_ENV_NAME, root_path=Path(base_env_path)))
    envs.extend(list_environment_roots(all_envs_root))

    bundle = replacer.bundle_file_name
    outcomes = []
    for env in envs:
        result = await replacer.replace(env.root_path)
        if result.existed:
            outcome = ReplacementOutcome(
                kind=OutcomeKind.REPLACED,
                env_name=env.name,
                message=f"{bundle} file replaced in the conda {env.name} env",
            )
        else:
            outcome = ReplacementOutcome(
                kind=OutcomeKind.MISSING,
                env_name=env.name,
                message=f"no {bundle} file in the conda {env.name} env",
            )
        logger.info({"event": "bulk_replace", "env": env.name, "outcome": outcome.kind.value})
        outcomes.append(outcome)

    return outcomes
