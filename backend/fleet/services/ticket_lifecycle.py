from __future__ import annotations
"""Service ticket status machine.

Every status write goes through `apply_transition` so the legal edges live in
one table and each write bumps the ticket version used for optimistic
concurrency.
"""
from datetime import datetime, timezone
from typing import Optional
from fleet.models.service_ticket import ServiceTicket as T
from fleet.models.service_ticket_approval import ServiceTicketApproval as A
from fleet.utils.fsm import TransitionValidator
from fleet.utils.validation import validate_status

TICKET_FSM = TransitionValidator({
    T.STATUS_DRAFT: {T.STATUS_SUBMITTED, T.STATUS_CANCELLED},
    # submitted -> submitted is the request_info loop
    T.STATUS_SUBMITTED: {T.STATUS_APPROVED, T.STATUS_REJECTED, T.STATUS_SUBMITTED, T.STATUS_CANCELLED},
    T.STATUS_REJECTED: {T.STATUS_SUBMITTED, T.STATUS_CANCELLED},
    T.STATUS_APPROVED: {T.STATUS_IN_PROGRESS, T.STATUS_CANCELLED},
    T.STATUS_IN_PROGRESS: {T.STATUS_COMPLETED, T.STATUS_CANCELLED},
    T.STATUS_COMPLETED: {T.STATUS_CANCELLED},
    T.STATUS_CANCELLED: set(),
})

ACTION_TO_STATUS = {
    A.ACTION_APPROVE: T.STATUS_APPROVED,
    A.ACTION_APPROVE_WITH_MODIFICATIONS: T.STATUS_APPROVED,
    A.ACTION_REJECT: T.STATUS_REJECTED,
    A.ACTION_REQUEST_INFO: T.STATUS_SUBMITTED,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def status_for_action(action: str) -> str:
    """Ticket status produced by an approval action (request_info leaves it submitted)."""
    return ACTION_TO_STATUS[action]


def decision_update_values(action: str, now: Optional[datetime] = None) -> dict:
    """Column values written to the ticket for a decision.

    approved_at is stamped only when the decision approves; otherwise it is
    left unset (null).
    """
    new_status = status_for_action(action)
    TICKET_FSM.assert_can_transition(T.STATUS_SUBMITTED, new_status)
    return {
        'status': new_status,
        'approved_at': (now or utcnow()) if new_status == T.STATUS_APPROVED else None,
    }


def apply_transition(ticket: T, target: str, now: Optional[datetime] = None) -> T:
    """Move an ORM ticket to target, stamping the lifecycle timestamp of the new state."""
    TICKET_FSM.assert_can_transition(ticket.status, target)
    now = now or utcnow()
    ticket.status = validate_status(target, T.ALL_STATUSES)
    if target == T.STATUS_SUBMITTED:
        ticket.submitted_at = now
        ticket.approved_at = None
    elif target == T.STATUS_IN_PROGRESS:
        ticket.work_started_at = now
    elif target == T.STATUS_COMPLETED:
        ticket.completed_at = now
    ticket.version = (ticket.version or 0) + 1
    return ticket

__all__ = ['TICKET_FSM', 'ACTION_TO_STATUS', 'status_for_action', 'decision_update_values',
           'apply_transition', 'utcnow']
