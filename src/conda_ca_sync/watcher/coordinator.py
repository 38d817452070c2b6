"""Two-attempt bundle replacement for newly created environments."""
import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional, Tuple

from conda_ca_sync.certs.replacer import BundleReplacer
from conda_ca_sync.errors import BundleCopyError, log_error
from conda_ca_sync.logging import OBSERVED, WAITING, OutcomeLog, get_logger
from conda_ca_sync.types import (
    CoordinationState,
    OutcomeKind,
    ReplacementOutcome,
    WatchEvent,
    utc_now,
)

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


class ReplacementCoordinator:
    """Drives one watch event to a terminal outcome.

    The bundle is checked immediately and, if the environment's ``ssl``
    folder has not been populated yet, exactly once more after
    ``wait_seconds``. There is no further polling: an environment still
    lacking its bundle ends as NOT_FOUND_AFTER_WAIT. Filesystem errors at
    either check end the sequence as FAILED and never escape ``handle``.
    """

    def __init__(
        self,
        replacer: BundleReplacer,
        wait_seconds: int,
        outcome_log: OutcomeLog,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utc_now,
    ):
        self.replacer = replacer
        self.wait_seconds = wait_seconds
        self.outcome_log = outcome_log
        self._sleep = sleep
        self._clock = clock
        # env name -> (owning sequence, state); a re-created env takes ownership
        self._states: Dict[str, Tuple[object, CoordinationState]] = {}

    def state_of(self, env_name: str) -> Optional[CoordinationState]:
        """State of the latest in-flight sequence for an env, None once it has finished."""
        entry = self._states.get(env_name)
        return entry[1] if entry else None

    def _set_state(self, token: object, event: WatchEvent, state: CoordinationState) -> None:
        owner = self._states.get(event.name)
        if owner is None or owner[0] is token:
            self._states[event.name] = (token, state)

    def _finish(self, token: object, kind: OutcomeKind, event: WatchEvent, message: str,
                error: Optional[str] = None) -> ReplacementOutcome:
        outcome = ReplacementOutcome(
            kind=kind,
            env_name=event.name,
            message=message,
            timestamp=self._clock(),
            error=error,
        )
        owner = self._states.get(event.name)
        if owner is not None and owner[0] is token:
            del self._states[event.name]
        self.outcome_log.record(outcome)
        logger.info({
            "event": "replacement_outcome",
            "env": event.name,
            "outcome": kind.value,
            "error": error,
        })
        return outcome

    async def _check(self, event: WatchEvent) -> bool:
        result = await self.replacer.replace(event.path)
        return result.existed

    async def handle(self, event: WatchEvent) -> ReplacementOutcome:
        bundle = self.replacer.bundle_file_name
        token = object()
        self._states[event.name] = (token, CoordinationState.OBSERVED)
        self.outcome_log.note(
            OBSERVED, event.name, f"created in {event.parent}", self._clock()
        )

        try:
            if await self._check(event):
                return self._finish(
                    token, OutcomeKind.REPLACED, event, f"{bundle} replaced in {event.name} env"
                )

            self._set_state(token, event, CoordinationState.IMMEDIATE_CHECK_FAILED)
            self.outcome_log.note(
                WAITING,
                event.name,
                f"{bundle} not present yet, checking again in {self.wait_seconds} seconds",
                self._clock(),
            )
            self._set_state(token, event, CoordinationState.WAITING)
            await self._sleep(self.wait_seconds)

            if await self._check(event):
                self._set_state(token, event, CoordinationState.FINAL_CHECK_SUCCEEDED)
                return self._finish(
                    token,
                    OutcomeKind.REPLACED,
                    event,
                    f"{bundle} detected after {self.wait_seconds} seconds and replaced "
                    f"in {event.name} env",
                )

            self._set_state(token, event, CoordinationState.FINAL_CHECK_FAILED)
            return self._finish(
                token,
                OutcomeKind.NOT_FOUND_AFTER_WAIT,
                event,
                f"{bundle} not detected in {event.name} env after {self.wait_seconds} "
                "seconds, increase the wait time if the env is not empty",
            )
        except (BundleCopyError, OSError) as e:
            log_error(e, {"env": event.name}, logger)
            return self._finish(
                token, OutcomeKind.FAILED, event, f"{bundle} replacement failed", error=str(e)
            )
