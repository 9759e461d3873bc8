"""Ticket issuance, storage and door verification."""

from .models import Ticket, TicketType, VerificationEntry
from .policy import FlagPolicy
from .repository import TicketRepository, TicketStore
from .service import TicketService
from .verification import VerificationEngine, VerificationOutcome, VerificationStatus

__all__ = [
    "FlagPolicy",
    "Ticket",
    "TicketRepository",
    "TicketService",
    "TicketStore",
    "TicketType",
    "VerificationEngine",
    "VerificationEntry",
    "VerificationOutcome",
    "VerificationStatus",
]
