from __future__ import annotations

import asyncio
import logging
from enum import Enum

from pydantic import ValidationError

from workbench.core.errors import RemoteFailure
from workbench.core.schema import AnalysisJob
from workbench.infrastructure import Notification, Notifier, RemoteGateway

logger = logging.getLogger(__name__)

IN_PROGRESS_STATUSES = frozenset({"analyzing", "training"})

NORMAL_INTERVAL = 5.0
AGGRESSIVE_INTERVAL = 1.0
AGGRESSIVE_DURATION = 10.0


class PollMode(str, Enum):
    IDLE = "idle"
    NORMAL = "normal"
    AGGRESSIVE = "aggressive"


class JobPoller:
    """Keeps a local view of analysis jobs in sync with the remote service.

    Every fetch carries an issue sequence number. A fetch only commits when it
    is newer than the last committed one, and status changes are diffed
    against the snapshot held at commit time, so a slow response can never
    roll an observed status back or produce a duplicate notification.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        notifier: Notifier,
        *,
        normal_interval: float = NORMAL_INTERVAL,
        aggressive_interval: float = AGGRESSIVE_INTERVAL,
        aggressive_duration: float = AGGRESSIVE_DURATION,
    ) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self._normal_interval = normal_interval
        self._aggressive_interval = aggressive_interval
        self._aggressive_duration = aggressive_duration

        self._jobs: list[AnalysisJob] = []
        self._issued = 0
        self._committed = 0

        self._running = False
        self._closed = False
        self._timer: asyncio.Task | None = None
        self._timer_interval: float | None = None
        self._aggressive_handle: asyncio.TimerHandle | None = None
        self._ticks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # read side
    # ------------------------------------------------------------------
    @property
    def jobs(self) -> list[AnalysisJob]:
        return list(self._jobs)

    @property
    def has_active_jobs(self) -> bool:
        return any(job.status in IN_PROGRESS_STATUSES for job in self._jobs)

    @property
    def mode(self) -> PollMode:
        if self._aggressive_handle is not None:
            return PollMode.AGGRESSIVE
        if self.has_active_jobs:
            return PollMode.NORMAL
        return PollMode.IDLE

    @property
    def interval(self) -> float | None:
        mode = self.mode
        if mode is PollMode.AGGRESSIVE:
            return self._aggressive_interval
        if mode is PollMode.NORMAL:
            return self._normal_interval
        return None

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self._closed:
            raise RuntimeError("poller has been stopped")
        self._running = True
        await self.refresh()
        self._reschedule()

    async def stop(self) -> None:
        self._closed = True
        self._running = False
        if self._aggressive_handle is not None:
            self._aggressive_handle.cancel()
            self._aggressive_handle = None
        pending = [task for task in (self._timer, *self._ticks) if task is not None and not task.done()]
        self._timer = None
        self._timer_interval = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # polling
    # ------------------------------------------------------------------
    async def refresh(self) -> bool:
        """Load the job list as a new baseline without emitting notifications."""

        sequence = self._next_sequence()
        try:
            jobs = await self._gateway.jobs.list()
        except (RemoteFailure, ValidationError) as exc:
            logger.error("failed to load jobs: %s", exc)
            return False
        if self._closed or sequence <= self._committed:
            return False
        self._jobs = list(jobs)
        self._committed = sequence
        self._reschedule()
        return True

    async def tick(self) -> list[Notification]:
        sequence = self._next_sequence()
        try:
            jobs = await self._gateway.jobs.list()
        except (RemoteFailure, ValidationError) as exc:
            logger.warning("job polling failed, retrying on next tick: %s", exc)
            return []
        return self._apply(sequence, jobs)

    def start_aggressive_polling(self) -> None:
        """Poll fast for a bounded time; a repeated call restarts the bound."""

        if self._closed:
            return
        if self._aggressive_handle is not None:
            self._aggressive_handle.cancel()
        loop = asyncio.get_running_loop()
        self._aggressive_handle = loop.call_later(self._aggressive_duration, self._end_aggressive)
        self._reschedule()

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _next_sequence(self) -> int:
        self._issued += 1
        return self._issued

    def _apply(self, sequence: int, jobs: list[AnalysisJob]) -> list[Notification]:
        if self._closed:
            return []
        if sequence <= self._committed:
            logger.debug("dropping stale job snapshot #%s (committed #%s)", sequence, self._committed)
            return []

        previous = {job.id: job.status for job in self._jobs}
        emitted: list[Notification] = []
        for job in jobs:
            old_status = previous.get(job.id)
            if old_status is None or old_status == job.status:
                continue
            logger.info("job %s moved from %s to %s", job.id, old_status, job.status)
            notification = self._transition_notification(job)
            if notification is not None:
                self._notifier.notify(notification)
                emitted.append(notification)

        self._jobs = list(jobs)
        self._committed = sequence
        self._reschedule()
        return emitted

    @staticmethod
    def _transition_notification(job: AnalysisJob) -> Notification | None:
        if job.status == "configuring":
            return Notification(
                level="info",
                message=f'Analysis ready! "{job.name}" is ready to configure.',
                kind="analysis_ready",
                job_id=job.id,
            )
        if job.status == "trained":
            return Notification(
                level="success",
                message=f"{job.name} training complete!",
                kind="training_complete",
                job_id=job.id,
            )
        return None

    def _end_aggressive(self) -> None:
        self._aggressive_handle = None
        self._reschedule()

    def _reschedule(self) -> None:
        if self._closed or not self._running:
            return
        interval = self.interval
        if interval == self._timer_interval and (interval is None or self.timer_running):
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_interval = interval
        if interval is None:
            return
        self._timer = asyncio.get_running_loop().create_task(self._run(interval))

    async def _run(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            task = asyncio.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
