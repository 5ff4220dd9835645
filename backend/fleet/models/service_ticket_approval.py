from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Numeric, Date, DateTime, ForeignKey, event, func
from .authz import Base


class ApprovalRecordImmutable(Exception):
    """Raised when something tries to change or remove a recorded decision."""


class ServiceTicketApproval(Base):
    """One approver decision on one ticket. Insert-only."""
    __tablename__ = 'service_ticket_approvals'
    ACTION_APPROVE = 'approve'
    ACTION_APPROVE_WITH_MODIFICATIONS = 'approve_with_modifications'
    ACTION_REQUEST_INFO = 'request_info'
    ACTION_REJECT = 'reject'
    ALL_ACTIONS = (ACTION_APPROVE, ACTION_APPROVE_WITH_MODIFICATIONS, ACTION_REQUEST_INFO, ACTION_REJECT)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('service_tickets.id'), nullable=False, index=True)
    approver_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    subsidiary_id: Mapped[int] = mapped_column(ForeignKey('subsidiaries.id'), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    comments: Mapped[Optional[str]] = mapped_column(Text)
    modifications: Mapped[Optional[str]] = mapped_column(Text)
    modified_labor_cost_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    modified_parts_cost_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    modified_total_cost_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    modified_completion_date: Mapped[Optional[date]] = mapped_column(Date)
    modified_vendor_id: Mapped[Optional[int]] = mapped_column(ForeignKey('vendors.id'), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    ticket = relationship('ServiceTicket', back_populates='approvals')
    approver = relationship('User', foreign_keys=[approver_id])


@event.listens_for(ServiceTicketApproval, 'before_update')
def _reject_update(mapper, connection, target):
    raise ApprovalRecordImmutable(f'approval {target.id} is immutable')


@event.listens_for(ServiceTicketApproval, 'before_delete')
def _reject_delete(mapper, connection, target):
    raise ApprovalRecordImmutable(f'approval {target.id} cannot be deleted')

__all__ = ["ServiceTicketApproval", "ApprovalRecordImmutable"]
