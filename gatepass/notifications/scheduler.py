"""Deferred one-shot ticket sends.

Each job fires once at an absolute instant through an APScheduler
``DateTrigger``.  The registry of pending jobs lives on the instance and
is only touched from the event loop: API calls and timer callbacks run
there one at a time, so a cancel and a fire for the same job never
interleave.  A fire removes the job before dispatching; if the job is
already gone it was cancelled and nothing is sent.

Jobs are held in memory only and are lost on restart.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from gatepass.errors import NotFoundError, NotReadyError, ValidationError
from gatepass.tickets.models import Ticket
from gatepass.tickets.phone import normalize_phone

from .dispatcher import Dispatcher

logger = logging.getLogger(__name__)


class JobStatus(str, Enum):
    SCHEDULED = "scheduled"
    FIRED = "fired"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class NotificationJob:
    id: str
    ticket: Ticket
    recipient: str
    fire_at: datetime
    email: str | None = None
    media: str | None = None
    status: JobStatus = JobStatus.SCHEDULED


class Scheduler:
    """Registry of pending sends, each fired once by a deadline timer."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        tz: str = "UTC",
        phone_region: str = "RO",
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._phone_region = phone_region
        self._tz = ZoneInfo(tz)
        self._scheduler = scheduler or AsyncIOScheduler(
            timezone=self._tz,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
        )
        self._jobs: dict[str, NotificationJob] = {}
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        if not self._scheduler.running:
            self._scheduler.start()
        self._started = True

    async def stop(self) -> None:
        # AsyncIOScheduler.shutdown is queued on the loop, so refuse new jobs first
        self._started = False
        for job_id in list(self._jobs):
            self.cancel(job_id)
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            await asyncio.sleep(0)

    def parse_when(self, when: str | datetime) -> datetime:
        """Read an explicit date-time; naive values are in the scheduler timezone."""

        if isinstance(when, datetime):
            moment = when
        else:
            if not when or not str(when).strip():
                raise ValidationError("Send time is required")
            try:
                moment = datetime.fromisoformat(str(when).strip())
            except ValueError as exc:
                raise ValidationError(f"Invalid send time {when!r}; expected YYYY-MM-DD HH:MM:SS") from exc
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self._tz)
        return moment

    def schedule(
        self,
        ticket: Ticket | None,
        recipient: str | None,
        when: str | datetime,
        *,
        email: str | None = None,
        media: str | None = None,
    ) -> str:
        if not self.running:
            raise NotReadyError("Scheduler has not been started")
        if ticket is None:
            raise ValidationError("Ticket is required")
        if not recipient or not recipient.strip():
            raise ValidationError("Recipient phone number is required")
        normalize_phone(recipient, default_region=self._phone_region)

        fire_at = self.parse_when(when)
        job_id = f"ticket_{uuid.uuid4().hex}"
        self._jobs[job_id] = NotificationJob(
            id=job_id,
            ticket=ticket,
            recipient=recipient,
            fire_at=fire_at,
            email=email,
            media=media,
        )
        self._scheduler.add_job(
            self._fire,
            trigger=DateTrigger(run_date=fire_at),
            id=job_id,
            args=[job_id],
            misfire_grace_time=None,
        )
        logger.info("Scheduled job %s for ticket %s at %s", job_id, ticket.id, fire_at.isoformat())
        return job_id

    def cancel(self, job_id: str) -> bool:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return False
        job.status = JobStatus.CANCELLED
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("Timer for job %s already gone", job_id)
        logger.info("Cancelled job %s", job_id)
        return True

    def get(self, job_id: str) -> NotificationJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Scheduled job {job_id} not found")
        return replace(job)

    def list_jobs(self) -> list[NotificationJob]:
        return [replace(job) for job in self._jobs.values()]

    def __len__(self) -> int:
        return len(self._jobs)

    async def _fire(self, job_id: str) -> None:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return
        job.status = JobStatus.FIRED
        try:
            outcome = await self._dispatcher.send(job.ticket, job.recipient, email=job.email, media=job.media)
        except Exception:
            logger.exception("Scheduled job %s for ticket %s failed", job_id, job.ticket.id)
            return
        logger.info("Scheduled job %s sent ticket %s via %s", job_id, job.ticket.id, outcome.primary_method)
