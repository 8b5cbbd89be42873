"""Background delivery of ticket notifications."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from helpdesk.metrics import metrics_registry
from helpdesk.tickets.models import Ticket

from .email import ChangeKind, TicketNotifier

logger = logging.getLogger(__name__)

_CREATED = "created"


@dataclass(slots=True)
class NotificationJob:
    ticket: Ticket
    change_kind: ChangeKind | None = None

    @property
    def label(self) -> str:
        return self.change_kind.value if self.change_kind is not None else _CREATED


class NotificationDispatcher:
    """Fire-and-forget queue in front of a :class:`TicketNotifier`.

    ``notify_created`` and ``notify_updated`` never block and never raise: they
    enqueue a snapshot of the ticket and return whether it was accepted. Worker
    tasks deliver the jobs in the background and log every failure. Use
    :meth:`join` to wait until everything queued so far has been processed.
    """

    def __init__(self, notifier: TicketNotifier, *, max_queue_size: int = 100, workers: int = 1) -> None:
        self._notifier = notifier
        self._queue: asyncio.Queue[NotificationJob] = asyncio.Queue(maxsize=max(1, max_queue_size))
        self._worker_count = max(1, workers)
        self._workers: list[asyncio.Task[None]] = []
        self._closed = False

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        self._closed = False
        self._ensure_workers()

    def notify_created(self, ticket: Ticket) -> bool:
        return self._submit(NotificationJob(ticket=replace(ticket)))

    def notify_updated(self, ticket: Ticket, change_kind: ChangeKind) -> bool:
        return self._submit(NotificationJob(ticket=replace(ticket), change_kind=change_kind))

    async def join(self) -> None:
        """Wait until every queued notification has been attempted."""

        await self._queue.join()

    async def stop(self) -> None:
        """Drain outstanding notifications, then stop the workers.

        Notifications submitted after this point are dropped until the next
        :meth:`start`.
        """

        self._closed = True
        if self.running:
            await self.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()

    def _submit(self, job: NotificationJob) -> bool:
        if self._closed:
            logger.warning(
                "Notification dispatcher is stopped, dropping %s notification for ticket %s",
                job.label,
                job.ticket.id,
            )
            metrics_registry.counter("notifications_dropped_total").inc()
            return False
        self._ensure_workers()
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.error(
                "Notification queue is full, dropping %s notification for ticket %s",
                job.label,
                job.ticket.id,
            )
            metrics_registry.counter("notifications_dropped_total").inc()
            return False
        return True

    def _ensure_workers(self) -> None:
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._work(), name=f"notification-worker-{index}")
            for index in range(self._worker_count)
        ]

    async def _work(self) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self._deliver(job)
            except Exception:
                logger.exception(
                    "Failed to send %s notification for ticket %s", job.label, job.ticket.id
                )
                metrics_registry.counter("notification_failures_total").inc(labels={"kind": job.label})
            else:
                metrics_registry.counter("notifications_sent_total").inc(labels={"kind": job.label})
            finally:
                self._queue.task_done()

    async def _deliver(self, job: NotificationJob) -> None:
        if job.change_kind is None:
            await self._notifier.send_created(job.ticket)
        else:
            await self._notifier.send_updated(job.ticket, job.change_kind)
