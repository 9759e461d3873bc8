"""Ticket notifications: channel chain, bulk sends and scheduled sends."""

from .bulk import BulkCoordinator, BulkItem, BulkResult
from .dispatcher import Dispatcher, DispatchOutcome
from .message import format_ticket_message
from .scheduler import JobStatus, NotificationJob, Scheduler

__all__ = [
    "BulkCoordinator",
    "BulkItem",
    "BulkResult",
    "DispatchOutcome",
    "Dispatcher",
    "JobStatus",
    "NotificationJob",
    "Scheduler",
    "format_ticket_message",
]
