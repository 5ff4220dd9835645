from __future__ import annotations
"""Approval workflow: the pending queue of a subsidiary and the decision processor.

Caller identity and subsidiary travel in an explicit `ApprovalContext` rather
than being read from request globals, so both operations can be driven from a
route, a script or a test with nothing but a session.

A decision is applied in one database transaction: the approval record is
inserted and the ticket row is updated with a conditional UPDATE keyed on the
version the approver saw. If any write fails the whole transaction is rolled
back, so there is never an approval record without its status change. If
another decision landed first the UPDATE matches no row and the caller gets a
409 instead of silently overwriting it.
"""
import logging
from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload
from werkzeug.exceptions import BadRequest, Forbidden, NotFound
from fleet.errors import (DecisionValidationError, NotAuthenticated, PersistenceError,
                          StaleTicketVersion, TicketNotAwaitingApproval)
from fleet.models.service_ticket import ServiceTicket
from fleet.models.service_ticket_approval import ServiceTicketApproval
from fleet.services.ticket_lifecycle import decision_update_values, utcnow
from fleet.services.tickets import money, parse_vendor_id, resolve_vendor_id
from fleet.utils.listing import iso_z
from fleet.utils.validation import optional_text, parse_optional_date, parse_optional_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalContext:
    """Who is deciding, and for which subsidiary's queue."""
    actor_id: Optional[int]
    subsidiary_id: int


@dataclass(frozen=True)
class DecisionForm:
    action: str
    comments: Optional[str] = None
    modifications: Optional[str] = None
    modified_labor_cost_limit: Optional[Decimal] = None
    modified_parts_cost_limit: Optional[Decimal] = None
    modified_total_cost_limit: Optional[Decimal] = None
    modified_completion_date: Optional[date] = None
    modified_vendor_id: Optional[int] = None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> 'DecisionForm':
        """Validate a submitted form. Nothing is written when this raises."""
        action = optional_text(data.get('action'))
        if action is None:
            raise DecisionValidationError('action is required')
        if action not in ServiceTicketApproval.ALL_ACTIONS:
            raise DecisionValidationError(f'action must be one of {", ".join(ServiceTicketApproval.ALL_ACTIONS)}')
        form = cls(action=action, comments=optional_text(data.get('comments')))
        if action != ServiceTicketApproval.ACTION_APPROVE_WITH_MODIFICATIONS:
            # overrides only mean something when approving with modifications
            return form
        try:
            return cls(
                action=action,
                comments=form.comments,
                modifications=optional_text(data.get('modifications')),
                modified_labor_cost_limit=parse_optional_decimal(data.get('modified_labor_cost_limit'), 'modified_labor_cost_limit'),
                modified_parts_cost_limit=parse_optional_decimal(data.get('modified_parts_cost_limit'), 'modified_parts_cost_limit'),
                modified_total_cost_limit=parse_optional_decimal(data.get('modified_total_cost_limit'), 'modified_total_cost_limit'),
                modified_completion_date=parse_optional_date(data.get('modified_completion_date'), 'modified_completion_date'),
                modified_vendor_id=parse_vendor_id(data.get('modified_vendor_id'), 'modified_vendor_id'),
            )
        except BadRequest as e:
            raise DecisionValidationError(e.description) from e


def list_approval_queue(session: Session, subsidiary_id: Any) -> List[ServiceTicket]:
    """Submitted tickets of one subsidiary, oldest submission first.

    An empty list is a normal result. A backend failure raises
    PersistenceError and returns nothing partial.
    """
    if subsidiary_id is None or (isinstance(subsidiary_id, str) and not subsidiary_id.strip()):
        raise BadRequest('subsidiary_id required')
    try:
        subsidiary_id = int(subsidiary_id)
    except (TypeError, ValueError):
        raise BadRequest('subsidiary_id invalid')
    stmt = (
        select(ServiceTicket)
        .options(joinedload(ServiceTicket.vehicle), joinedload(ServiceTicket.requester),
                 joinedload(ServiceTicket.vendor), selectinload(ServiceTicket.parts))
        .where(ServiceTicket.subsidiary_id == subsidiary_id,
               ServiceTicket.status == ServiceTicket.STATUS_SUBMITTED)
        .order_by(ServiceTicket.submitted_at.asc(), ServiceTicket.id.asc())
    )
    try:
        return list(session.execute(stmt).unique().scalars())
    except SQLAlchemyError:
        session.rollback()
        logger.exception('Error fetching pending tickets for subsidiary %s', subsidiary_id)
        raise PersistenceError('Failed to fetch pending tickets')


def process_decision(session: Session, ctx: ApprovalContext, ticket_id: int, form: DecisionForm,
                     expected_version: Optional[int] = None,
                     now: Optional[datetime] = None) -> Tuple[ServiceTicket, ServiceTicketApproval]:
    """Record one approver decision and apply its status change atomically."""
    if ctx.actor_id is None:
        raise NotAuthenticated()
    ticket = session.get(ServiceTicket, ticket_id)
    if ticket is None:
        raise NotFound('Ticket not found')
    if ticket.subsidiary_id != ctx.subsidiary_id:
        raise Forbidden('Ticket belongs to another subsidiary')
    if ticket.status != ServiceTicket.STATUS_SUBMITTED:
        raise TicketNotAwaitingApproval()
    seen_version = ticket.version
    if expected_version is not None and expected_version != seen_version:
        raise StaleTicketVersion()
    try:
        vendor_id = resolve_vendor_id(session, form.modified_vendor_id, ticket.subsidiary_id, 'modified_vendor_id')
    except BadRequest as e:
        raise DecisionValidationError(e.description) from e

    now = now or utcnow()
    values = decision_update_values(form.action, now)
    approval = ServiceTicketApproval(
        ticket_id=ticket.id,
        approver_id=ctx.actor_id,
        subsidiary_id=ctx.subsidiary_id,
        action=form.action,
        comments=form.comments,
        modifications=form.modifications,
        modified_labor_cost_limit=form.modified_labor_cost_limit,
        modified_parts_cost_limit=form.modified_parts_cost_limit,
        modified_total_cost_limit=form.modified_total_cost_limit,
        modified_completion_date=form.modified_completion_date,
        modified_vendor_id=vendor_id,
    )
    try:
        session.add(approval)
        session.flush()
        result = session.execute(
            update(ServiceTicket)
            .where(ServiceTicket.id == ticket.id,
                   ServiceTicket.version == seen_version,
                   ServiceTicket.status == ServiceTicket.STATUS_SUBMITTED)
            .values(version=ServiceTicket.version + 1, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            logger.warning('Decision %s on ticket %s lost a concurrent update (version %s)',
                           form.action, ticket.id, seen_version)
            raise StaleTicketVersion()
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception('Error processing approval %s for ticket %s', form.action, ticket_id)
        raise PersistenceError('Failed to process approval')
    session.refresh(ticket)
    logger.info('Ticket %s %s by user %s -> %s', ticket.ticket_number, form.action, ctx.actor_id, ticket.status)
    return ticket, approval


def approval_history(session: Session, ticket_id: int) -> List[ServiceTicketApproval]:
    stmt = (
        select(ServiceTicketApproval)
        .options(joinedload(ServiceTicketApproval.approver))
        .where(ServiceTicketApproval.ticket_id == ticket_id)
        .order_by(ServiceTicketApproval.created_at.asc(), ServiceTicketApproval.id.asc())
    )
    return list(session.execute(stmt).scalars())


def approval_json(a: ServiceTicketApproval) -> Dict[str, Any]:
    body: Dict[str, Any] = {}
    for f in fields(DecisionForm):
        value = getattr(a, f.name)
        if isinstance(value, Decimal):
            value = money(value)
        elif isinstance(value, date):
            value = value.isoformat()
        body[f.name] = value
    body.update({
        'id': a.id,
        'ticket_id': a.ticket_id,
        'approver_id': a.approver_id,
        'approver': {'full_name': a.approver.full_name} if a.approver else None,
        'subsidiary_id': a.subsidiary_id,
        'created_at': iso_z(a.created_at),
    })
    return body

__all__ = ['ApprovalContext', 'DecisionForm', 'list_approval_queue', 'process_decision',
           'approval_history', 'approval_json']
