from __future__ import annotations
"""Service ticket helpers: numbering, cost estimate, payload validation, JSON shape and stats."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from flask import abort
from sqlalchemy import select, func
from sqlalchemy.orm import Session
from fleet.models.service_ticket import ServiceTicket, ServiceTicketPart
from fleet.models.vehicle import Vehicle
from fleet.models.vendor import Vendor
from fleet.services.badges import status_badge, priority_badge
from fleet.utils.listing import iso_z
from fleet.utils.validation import (validate_status, parse_optional_decimal, parse_optional_date,
                                    parse_optional_int, blank)

CENTS = Decimal('0.01')


def money(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def next_ticket_number(session: Session, prefix: str, now: datetime) -> str:
    """`<prefix>-<YYYYMM>-<NNNN>`, sequence restarting every month."""
    stem = f"{prefix}-{now:%Y%m}-"
    # longest suffix first: text order puts -10000 below -9999
    last = session.execute(
        select(ServiceTicket.ticket_number)
        .where(ServiceTicket.ticket_number.like(f"{stem}%"))
        .order_by(func.length(ServiceTicket.ticket_number).desc(), ServiceTicket.ticket_number.desc())
        .limit(1)
    ).scalar_one_or_none()
    seq = 1
    if last:
        try:
            seq = int(last.rsplit('-', 1)[1]) + 1
        except ValueError:
            seq = 1
    return f"{stem}{seq:04d}"


def estimate_costs(hours: Optional[Decimal], rate: Optional[Decimal], parts: List[ServiceTicketPart]) -> Dict[str, Optional[Decimal]]:
    labor = (hours * rate).quantize(CENTS) if hours is not None and rate is not None else Decimal('0')
    parts_cost = sum((Decimal(p.quantity) * (p.estimated_unit_cost or Decimal('0')) for p in parts), Decimal('0'))
    total = labor + parts_cost
    # zero estimates are stored as absent
    return {
        'estimated_labor_cost': labor or None,
        'estimated_parts_cost': parts_cost.quantize(CENTS) if parts_cost else None,
        'estimated_total_cost': total.quantize(CENTS) if total else None,
    }


def _parse_parts(raw: Any) -> List[ServiceTicketPart]:
    if not isinstance(raw, list):
        abort(400, description='parts must be a list')
    parts = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict) or blank(item.get('description')):
            abort(400, description=f'parts[{i}].description required')
        qty = parse_optional_int(item.get('quantity', 1), f'parts[{i}].quantity')
        if qty is None or qty < 1:
            abort(400, description=f'parts[{i}].quantity must be >= 1')
        unit = parse_optional_decimal(item.get('estimated_unit_cost'), f'parts[{i}].estimated_unit_cost') or Decimal('0')
        parts.append(ServiceTicketPart(description=str(item['description']).strip(), quantity=qty, estimated_unit_cost=unit))
    return parts


def apply_ticket_payload(session: Session, ticket: ServiceTicket, data: Dict[str, Any], creating: bool):
    """Validate request fields and copy them onto ticket. Only keys present are touched on edit."""
    def present(key):
        return creating or key in data

    for key in ('title', 'description'):
        if present(key):
            if blank(data.get(key)):
                abort(400, description=f'{key} required')
            setattr(ticket, key, str(data[key]).strip())
    for key, allowed, default in (('ticket_type', ServiceTicket.TYPES, 'breakdown'),
                                  ('priority', ServiceTicket.PRIORITIES, 'medium'),
                                  ('urgency', ServiceTicket.URGENCIES, 'within_week')):
        if present(key):
            value = data.get(key) or default
            setattr(ticket, key, validate_status(value, allowed, key))
    if present('vehicle_id'):
        vehicle_id = parse_optional_int(data.get('vehicle_id'), 'vehicle_id')
        if vehicle_id is None:
            abort(400, description='vehicle_id required')
        vehicle = session.get(Vehicle, vehicle_id)
        if vehicle is None or vehicle.subsidiary_id != ticket.subsidiary_id:
            abort(400, description='vehicle_id invalid for subsidiary')
        ticket.vehicle_id = vehicle_id
    if present('assigned_vendor_id'):
        ticket.assigned_vendor_id = resolve_vendor_id(session, data.get('assigned_vendor_id'),
                                                      ticket.subsidiary_id, 'assigned_vendor_id')
    if present('requested_completion_date'):
        ticket.requested_completion_date = parse_optional_date(data.get('requested_completion_date'), 'requested_completion_date')
    if present('estimated_labor_hours'):
        ticket.estimated_labor_hours = parse_optional_decimal(data.get('estimated_labor_hours'), 'estimated_labor_hours')
    if present('estimated_labor_rate'):
        ticket.estimated_labor_rate = parse_optional_decimal(data.get('estimated_labor_rate'), 'estimated_labor_rate')
    if present('parts'):
        ticket.parts = _parse_parts(data.get('parts') or [])
    for key, value in estimate_costs(ticket.estimated_labor_hours, ticket.estimated_labor_rate, ticket.parts).items():
        setattr(ticket, key, value)
    return ticket


def parse_vendor_id(raw: Any, field_name: str) -> Optional[int]:
    """Blank, or the vendor picker's literal "none", means no vendor."""
    if raw == 'none':
        return None
    return parse_optional_int(raw, field_name)


def resolve_vendor_id(session: Session, raw: Any, subsidiary_id: int, field_name: str) -> Optional[int]:
    """No vendor, or an active vendor of the subsidiary."""
    vendor_id = parse_vendor_id(raw, field_name)
    if vendor_id is None:
        return None
    vendor = session.get(Vendor, vendor_id)
    if vendor is None or vendor.subsidiary_id != subsidiary_id or not vendor.is_active:
        abort(400, description=f'{field_name} invalid for subsidiary')
    return vendor_id


def ticket_etag(ticket: ServiceTicket) -> str:
    return f"v{ticket.version}"


def ticket_json(t: ServiceTicket) -> Dict[str, Any]:
    return {
        'id': t.id,
        'ticket_number': t.ticket_number,
        'subsidiary_id': t.subsidiary_id,
        'vehicle_id': t.vehicle_id,
        'created_by': t.created_by,
        'assigned_vendor_id': t.assigned_vendor_id,
        'title': t.title,
        'description': t.description,
        'ticket_type': t.ticket_type,
        'priority': t.priority,
        'urgency': t.urgency,
        'status': t.status,
        'estimated_labor_hours': money(t.estimated_labor_hours),
        'estimated_labor_rate': money(t.estimated_labor_rate),
        'estimated_labor_cost': money(t.estimated_labor_cost),
        'estimated_parts_cost': money(t.estimated_parts_cost),
        'estimated_total_cost': money(t.estimated_total_cost),
        'actual_total_cost': money(t.actual_total_cost),
        'completion_notes': t.completion_notes,
        'requested_completion_date': t.requested_completion_date.isoformat() if t.requested_completion_date else None,
        'created_at': iso_z(t.created_at),
        'updated_at': iso_z(t.updated_at),
        'submitted_at': iso_z(t.submitted_at),
        'approved_at': iso_z(t.approved_at),
        'work_started_at': iso_z(t.work_started_at),
        'completed_at': iso_z(t.completed_at),
        'version': t.version,
        'vehicle': {
            'vehicle_number': t.vehicle.vehicle_number,
            'make': t.vehicle.make,
            'model': t.vehicle.model,
        } if t.vehicle else None,
        'requester': {'full_name': t.requester.full_name} if t.requester else None,
        'vendor': {'name': t.vendor.name} if t.vendor else None,
        'parts': [
            {'id': p.id, 'description': p.description, 'quantity': p.quantity,
             'estimated_unit_cost': money(p.estimated_unit_cost)}
            for p in t.parts
        ],
        'status_badge': status_badge(t.status),
        'priority_badge': priority_badge(t.priority),
    }


def ticket_stats(session: Session, subsidiary_ids: List[int]) -> Dict[str, Any]:
    """Counts per status plus spend over tickets that recorded an actual cost."""
    q = select(ServiceTicket.status, func.count(ServiceTicket.id)).group_by(ServiceTicket.status)
    cost_q = select(func.count(ServiceTicket.actual_total_cost), func.sum(ServiceTicket.actual_total_cost)) \
        .where(ServiceTicket.actual_total_cost.is_not(None))
    if subsidiary_ids:
        q = q.where(ServiceTicket.subsidiary_id.in_(subsidiary_ids))
        cost_q = cost_q.where(ServiceTicket.subsidiary_id.in_(subsidiary_ids))
    by_status = {s: 0 for s in ServiceTicket.ALL_STATUSES}
    for status, count in session.execute(q):
        by_status[status] = count
    costed, spent = session.execute(cost_q).one()
    spent = Decimal(spent or 0)
    return {
        'total': sum(by_status.values()),
        'by_status': by_status,
        'total_cost': float(spent),
        'average_cost': float((spent / costed).quantize(CENTS)) if costed else 0.0,
    }

__all__ = ['next_ticket_number', 'estimate_costs', 'apply_ticket_payload', 'parse_vendor_id', 'resolve_vendor_id',
           'ticket_json', 'ticket_etag', 'ticket_stats', 'money']
