"""Process entry points for the monitor, bulk replacement and hook installation."""
import asyncio
import sys

from conda_ca_sync.certs.copier import copier_for
from conda_ca_sync.certs.replacer import BundleReplacer
from conda_ca_sync.config import SyncConfig, load_config, load_hook_config
from conda_ca_sync.environments.bulk import replace_all
from conda_ca_sync.environments.discovery import locate_environment
from conda_ca_sync.environments.hooks import install_hooks
from conda_ca_sync.errors import CertSyncError, log_error
from conda_ca_sync.logging import OutcomeLog, configure_logging, get_logger
from conda_ca_sync.types import OutcomeKind
from conda_ca_sync.watcher.coordinator import ReplacementCoordinator
from conda_ca_sync.watcher.events import WatchdogDirectoryWatcher
from conda_ca_sync.watcher.monitor import run_monitor

logger = get_logger("server")


async def serve(config: SyncConfig) -> None:
    """Watch ``environments_root`` until the process is terminated."""
    replacer = BundleReplacer(config, copier_for(config.use_sudo))
    watcher = WatchdogDirectoryWatcher(config.environments_root)

    # The sink is only created once the watch is established.
    watcher.start()
    try:
        with OutcomeLog(config.log_sink) as outcome_log:
            coordinator = ReplacementCoordinator(
                replacer, config.wait_seconds, outcome_log
            )
            logger.info({
                "event": "monitor_starting",
                "root": str(config.environments_root),
                "log_sink": str(config.log_sink),
                "wait_seconds": config.wait_seconds,
            })
            await run_monitor(watcher, coordinator)
    finally:
        watcher.stop()


async def replace_existing(config: SyncConfig) -> int:
    replacer = BundleReplacer(config, copier_for(config.use_sudo))
    bundle = config.bundle_file_name

    print(f"Replacing the {bundle} files in all the available conda environments ...")
    outcomes = await replace_all(
        config.base_env_path, config.environments_root, replacer
    )
    for outcome in outcomes:
        if outcome.kind is OutcomeKind.REPLACED:
            print(outcome.message)

    replaced = sum(1 for o in outcomes if o.kind is OutcomeKind.REPLACED)
    print(f"{bundle} files were replaced in {replaced} of {len(outcomes)} conda environments")
    return 0


async def add_hooks() -> int:
    config = load_config()
    hook_config = load_hook_config()

    env = await locate_environment(hook_config.env_name)
    print(f"Adding custom activation scripts to the {env.name} conda env ...")
    installed = await install_hooks(
        env.root_path,
        hook_config.activation_script,
        hook_config.deactivation_script,
        copier=copier_for(config.use_sudo),
    )
    for path in installed:
        print(f"Installed {path}")
    print(f"Please re-activate the env {env.name} to apply changes")
    return 0


def _run(main) -> None:
    configure_logging()
    try:
        sys.exit(asyncio.run(main()))
    except CertSyncError as e:
        log_error(e, logger=logger)
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        sys.exit(130)


def monitor_main() -> None:
    """Run the monitor. Exits non-zero if the watch cannot be established."""
    _run(lambda: serve(load_config()))


def replace_main() -> None:
    """Replace the bundle in every existing environment and print a summary."""
    _run(lambda: replace_existing(load_config()))


def hooks_main() -> None:
    """Install activation/deactivation scripts into one environment."""
    _run(add_hooks)
