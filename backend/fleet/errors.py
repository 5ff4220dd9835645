from __future__ import annotations
"""Domain errors raised by the service layer.

They subclass werkzeug HTTP exceptions so the app-level error handler renders
them in the standard `{"error": {...}}` envelope, while service functions stay
callable (and testable) without a request.
"""
from werkzeug.exceptions import BadRequest, Conflict, InternalServerError, Unauthorized


class DecisionValidationError(BadRequest):
    """Decision form rejected before anything is written."""


class NotAuthenticated(Unauthorized):
    description = 'User not authenticated'


class TicketNotAwaitingApproval(Conflict):
    description = 'Ticket is not awaiting approval'


class StaleTicketVersion(Conflict):
    description = 'Ticket was changed by someone else; reload and retry'


class PersistenceError(InternalServerError):
    """A backend write/read failed; the transaction was rolled back."""


__all__ = ['DecisionValidationError', 'NotAuthenticated', 'TicketNotAwaitingApproval',
           'StaleTicketVersion', 'PersistenceError']
