"""Periodic probe -> observe -> notify pipeline."""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol

import structlog

from ..checks.tcp_probe import TcpProbeResult, check_tcp
from ..config import HealthCheckerConfig
from ..notifications.messages import StatusMessage, build_status_change_message, load_timezone, presence_text
from ..state_tracker import ReachabilityState, StateTracker, TransitionEvent
from .job_scheduler import JobScheduler


logger = structlog.get_logger(__name__)

HEALTH_CHECK_JOB_ID = "tcp_health_check"

ProbeFunc = Callable[..., Awaitable[TcpProbeResult]]


class NotificationSink(Protocol):
    """What the monitor needs from the chat platform."""

    async def set_presence(self, text: str, active: bool) -> bool:
        ...

    async def send_direct_message(self, recipient_id: str, message: StatusMessage) -> bool:
        ...


class HealthMonitor:
    """Drives the TCP probe and reports state changes to a notification sink."""

    def __init__(
        self,
        config: HealthCheckerConfig,
        sink: NotificationSink,
        tracker: Optional[StateTracker] = None,
        probe_func: ProbeFunc = check_tcp,
    ):
        self.config = config
        self.sink = sink
        self.tracker = tracker or StateTracker()
        self._probe = probe_func
        self._tz = load_timezone(config.display_timezone)
        self._presence_state: Optional[ReachabilityState] = None
        self._cycle_lock = asyncio.Lock()
        self.cycle_count = 0

    async def run_cycle(self) -> Optional[TransitionEvent]:
        """Run one check cycle.

        Returns:
            The TransitionEvent produced by this cycle, if any
        """
        if self._cycle_lock.locked():
            logger.warning("Previous check still running, skipping cycle", target=self.config.target)
            return None

        async with self._cycle_lock:
            result = await self._probe(
                self.config.target_host,
                self.config.target_port,
                timeout_seconds=self.config.timeout_seconds,
            )
            self.cycle_count += 1
            logger.info(
                "Target checked",
                target=self.config.target,
                status="Active" if result.reachable else "Inactive",
                reason=result.reason,
                elapsed_ms=result.elapsed_ms,
            )

            event = self.tracker.observe(result.reachable, result.observed_at)
            await self._update_presence()
            if event is not None:
                await self._notify(event)
            return event

    async def refresh_presence(self):
        """Re-broadcast the current state, e.g. after the chat session reconnects."""
        await self._update_presence(force=True)

    async def _update_presence(self, force: bool = False):
        state = self.tracker.state
        if state is ReachabilityState.UNKNOWN:
            return
        if not force and state is self._presence_state:
            return

        active = state is ReachabilityState.UP
        ok = await self._deliver("presence", self.sink.set_presence(presence_text(active), active))
        # A failed update leaves the cache empty so the next cycle retries it.
        self._presence_state = state if ok else None

    async def _notify(self, event: TransitionEvent):
        message = build_status_change_message(event, target=self.config.target, tz=self._tz)
        ok = await self._deliver(
            "direct_message",
            self.sink.send_direct_message(self.config.notify_user_id, message),
        )
        logger.info(
            "Status change notification processed",
            delivered=ok,
            previous=event.previous.value,
            current=event.current.value,
        )

    async def _deliver(self, kind: str, call: Awaitable[bool]) -> bool:
        try:
            return bool(await call)
        except Exception:
            logger.exception("Notification delivery failed", kind=kind)
            return False

    async def _scheduled_cycle(self):
        try:
            await self.run_cycle()
        except Exception:
            logger.exception("Health check cycle failed", target=self.config.target)

    def schedule(self, scheduler: JobScheduler):
        """Register the health check as an immediate, non-overlapping interval job."""
        scheduler.add_interval_job(
            job_id=HEALTH_CHECK_JOB_ID,
            func=self._scheduled_cycle,
            seconds=self.config.check_interval_seconds,
            run_immediately=True,
            description=f"TCP health check for {self.config.target}",
        )

    async def run(self, max_cycles: Optional[int] = None):
        """Run cycles back to back without APScheduler.

        The first cycle starts immediately; afterwards cycles start every
        ``check_interval_seconds``. A cycle that overruns the interval delays
        the next one instead of overlapping it.
        """
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            started = time.monotonic()
            await self._scheduled_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break

            elapsed = time.monotonic() - started
            sleep_for = max(0.0, self.config.check_interval_seconds - elapsed)
            logger.debug("Cycle complete", elapsed_seconds=round(elapsed, 3), sleep_seconds=round(sleep_for, 3))
            await asyncio.sleep(sleep_for)
