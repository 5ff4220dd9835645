from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, Numeric, Date, DateTime, ForeignKey, func
from .authz import Base


class ServiceTicket(Base):
    __tablename__ = 'service_tickets'
    # Status constants
    STATUS_DRAFT = 'draft'
    STATUS_SUBMITTED = 'submitted'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED, STATUS_APPROVED, STATUS_REJECTED,
                    STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED)
    # Requesters may only edit tickets nobody is acting on
    EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_REJECTED)

    TYPES = ('breakdown', 'preventive', 'scheduled')
    PRIORITIES = ('critical', 'high', 'medium', 'low')
    URGENCIES = ('immediate', 'within_24h', 'within_week', 'scheduled')

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    subsidiary_id: Mapped[int] = mapped_column(ForeignKey('subsidiaries.id'), nullable=False, index=True)
    vehicle_id: Mapped[int] = mapped_column(ForeignKey('vehicles.id'), nullable=False, index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    assigned_vendor_id: Mapped[Optional[int]] = mapped_column(ForeignKey('vendors.id'), nullable=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    ticket_type: Mapped[str] = mapped_column(String(16), nullable=False, default='breakdown')
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default='medium', index=True)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default='within_week')
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_DRAFT, index=True)

    estimated_labor_hours: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2))
    estimated_labor_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    estimated_labor_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    estimated_parts_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    estimated_total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    actual_total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    completion_notes: Mapped[Optional[str]] = mapped_column(Text)
    requested_completion_date: Mapped[Optional[date]] = mapped_column(Date)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), index=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    work_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Bumped on every status write; decisions are applied only against the version they saw
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    vehicle = relationship('Vehicle')
    requester = relationship('User', foreign_keys=[created_by])
    vendor = relationship('Vendor', foreign_keys=[assigned_vendor_id])
    parts: Mapped[List['ServiceTicketPart']] = relationship(
        'ServiceTicketPart', back_populates='ticket', cascade='all, delete-orphan', order_by='ServiceTicketPart.id')
    approvals = relationship('ServiceTicketApproval', back_populates='ticket',
                             order_by='ServiceTicketApproval.id', passive_deletes='all')


class ServiceTicketPart(Base):
    """Estimated parts line of a ticket."""
    __tablename__ = 'service_ticket_parts'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey('service_tickets.id', ondelete='CASCADE'), nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    estimated_unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    ticket = relationship('ServiceTicket', back_populates='parts')

# Status flow: draft -> submitted -> approved -> in_progress -> completed
# submitted -> rejected -> submitted (resubmission); cancelled reachable from every other state.

__all__ = ["ServiceTicket", "ServiceTicketPart"]
