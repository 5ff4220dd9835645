from __future__ import annotations
import logging
from flask import Blueprint, request, abort, current_app, make_response, jsonify
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from fleet import get_db
from fleet.decorators.auth import require_permissions, current_actor_id
from fleet.decorators.audit import audit_log
from fleet.errors import PersistenceError
from fleet.models.service_ticket import ServiceTicket
from fleet.models.subsidiary import Subsidiary
from fleet.models.vehicle import Vehicle
from fleet.services.approvals import approval_history, approval_json
from fleet.services.badges import badge_catalog
from fleet.services.policy import (assert_subsidiary_access, scoped_subsidiary_ids, filter_query_by_subsidiaries,
                                   has_permissions)
from fleet.services.ticket_lifecycle import apply_transition, utcnow
from fleet.services.tickets import (apply_ticket_payload, next_ticket_number, ticket_json, ticket_etag,
                                    ticket_stats)
from fleet.utils.listing import (apply_pagination, make_cached_list_response, handle_conditional,
                                 make_resource_response, if_match_version, compute_etag)
from fleet.utils.query import apply_filters, apply_multi_sort
from fleet.utils.validation import parse_optional_decimal, parse_optional_int, optional_text

logger = logging.getLogger(__name__)

tickets_bp = Blueprint('service_tickets', __name__)

T = ServiceTicket

TICKET_NUMBER_ATTEMPTS = 3

FILTERS = {
    'subsidiary_id': {'coerce': int, 'op': lambda q, v: q.filter(T.subsidiary_id == v)},
    'status': {'validate': lambda v: v in T.ALL_STATUSES, 'op': lambda q, v: q.filter(T.status == v)},
    'priority': {'validate': lambda v: v in T.PRIORITIES, 'op': lambda q, v: q.filter(T.priority == v)},
    'search': {'op': lambda q, v: q.filter(or_(
        T.ticket_number.ilike(f'%{v}%'),
        T.title.ilike(f'%{v}%'),
        T.vehicle.has(Vehicle.vehicle_number.ilike(f'%{v}%')),
    ))},
}

SORTABLE = {
    'created_at': T.created_at,
    'updated_at': T.updated_at,
    'submitted_at': T.submitted_at,
    'priority': T.priority,
    'status': T.status,
    'ticket_number': T.ticket_number,
    'id': T.id,
}


def _load_ticket(ticket_id: int) -> ServiceTicket:
    t = get_db().get(ServiceTicket, ticket_id)
    if not t:
        abort(404, description='Ticket not found')
    assert_subsidiary_access(t.subsidiary_id)
    return t


def _prefetch_ticket(ticket_id):  # helper for audit decorator pre_fetch
    t = get_db().get(ServiceTicket, ticket_id)
    return {'status': t.status} if t else {}


def _check_version(t: ServiceTicket):
    expected = if_match_version()
    if expected is not None and expected != t.version:
        abort(409, description='Ticket was changed by someone else; reload and retry')


def _ticket_response(t: ServiceTicket, status: int = 200):
    resp = make_response(jsonify(ticket_json(t)), status)
    resp.headers['ETag'] = ticket_etag(t)
    return resp


@tickets_bp.route('', methods=['GET', 'HEAD'])
@require_permissions('TKT.READ')
def list_tickets():
    session = get_db()
    q = session.query(ServiceTicket).options(
        selectinload(T.vehicle), selectinload(T.requester), selectinload(T.vendor), selectinload(T.parts))
    q = filter_query_by_subsidiaries(q, T.subsidiary_id, scoped_subsidiary_ids())
    q = apply_filters(q, FILTERS, request.args)
    q = apply_multi_sort(q, request.args.get('sort'), SORTABLE, T.id, default='-created_at')
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((t.updated_at for t in rows if t.updated_at), default=None)
    marker = ','.join(f'{t.id}:{t.version}' for t in rows)
    resp, etag = make_cached_list_response([ticket_json(t) for t in rows], total, limit, offset, latest_ts, marker)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        cond.set_data(b'')
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


@tickets_bp.get('/stats')
@require_permissions('TKT.READ')
def stats():
    subsidiary_ids = scoped_subsidiary_ids()
    requested = parse_optional_int(request.args.get('subsidiary_id'), 'subsidiary_id')
    if requested is not None:
        assert_subsidiary_access(requested)
        subsidiary_ids = [requested]
    return ticket_stats(get_db(), subsidiary_ids)


@tickets_bp.get('/meta/badges')
def badges():
    return badge_catalog()


@tickets_bp.route('/<int:ticket_id>', methods=['GET', 'HEAD'])
@require_permissions('TKT.READ')
def get_ticket(ticket_id: int):
    t = _load_ticket(ticket_id)
    return make_resource_response(ticket_json(t), ticket_etag(t), t.updated_at)


@tickets_bp.get('/<int:ticket_id>/approvals')
@require_permissions('TKT.READ')
def list_ticket_approvals(ticket_id: int):
    t = _load_ticket(ticket_id)
    rows = approval_history(get_db(), t.id)
    etag = compute_etag([a.id for a in rows], len(rows), len(rows), 0, ticket_etag(t))
    return make_resource_response({'data': [approval_json(a) for a in rows], 'count': len(rows)}, etag)


@tickets_bp.post('')
@require_permissions('TKT.CREATE')
@audit_log('TKT.CREATE', entity='ServiceTicket', entity_id_key='id', meta_keys=['ticket_number', 'status'])
def create_ticket():
    session = get_db()
    data = request.get_json(silent=True) or {}
    subsidiary_id = parse_optional_int(data.get('subsidiary_id'), 'subsidiary_id')
    if subsidiary_id is None:
        abort(400, description='subsidiary_id required')
    assert_subsidiary_access(subsidiary_id)
    subsidiary = session.get(Subsidiary, subsidiary_id)
    if subsidiary is None or not subsidiary.is_active:
        abort(400, description='subsidiary_id invalid')
    submit = bool(data.get('submit'))
    if submit and not has_permissions('TKT.SUBMIT'):
        abort(403, description='Missing permission')
    now = utcnow()
    t = ServiceTicket(subsidiary_id=subsidiary_id, created_by=current_actor_id(), status=T.STATUS_DRAFT)
    apply_ticket_payload(session, t, data, creating=True)
    if submit:
        apply_transition(t, T.STATUS_SUBMITTED, now)
    for attempt in range(1, TICKET_NUMBER_ATTEMPTS + 1):
        t.ticket_number = next_ticket_number(session, current_app.config['TICKET_NUMBER_PREFIX'], now)
        session.add(t)
        try:
            session.commit()
            break
        except IntegrityError:
            # another create took the same number
            session.rollback()
            logger.warning('Ticket number %s taken (attempt %s)', t.ticket_number, attempt)
    else:
        raise PersistenceError('Failed to allocate a ticket number')
    logger.info('Ticket %s created as %s by user %s', t.ticket_number, t.status, t.created_by)
    return _ticket_response(t, 201)


@tickets_bp.patch('/<int:ticket_id>')
@require_permissions('TKT.UPDATE')
@audit_log('TKT.UPDATE', entity='ServiceTicket', entity_id_key='id', meta_keys=['ticket_number'])
def update_ticket(ticket_id: int):
    session = get_db()
    t = _load_ticket(ticket_id)
    if t.status not in T.EDITABLE_STATUSES:
        abort(409, description=f'Ticket cannot be edited while {t.status}')
    _check_version(t)
    data = request.get_json(silent=True) or {}
    apply_ticket_payload(session, t, data, creating=False)
    t.version = t.version + 1
    session.commit()
    return _ticket_response(t)


@tickets_bp.delete('/<int:ticket_id>')
@require_permissions('TKT.DELETE')
@audit_log('TKT.DELETE', entity='ServiceTicket', entity_id_arg='ticket_id')
def delete_ticket(ticket_id: int):
    session = get_db()
    t = _load_ticket(ticket_id)
    if t.status != T.STATUS_DRAFT:
        abort(409, description='Only draft tickets can be deleted')
    session.delete(t)
    session.commit()
    logger.info('Ticket %s deleted', t.ticket_number)
    return {'id': ticket_id, 'subsidiary_id': t.subsidiary_id, 'deleted': True}


def _transition(ticket_id: int, target: str, allowed_from=None):
    session = get_db()
    t = _load_ticket(ticket_id)
    # submitted -> submitted is reserved for request_info decisions
    if allowed_from is not None and t.status not in allowed_from:
        abort(400, description=f'Invalid status transition {t.status} -> {target}')
    _check_version(t)
    apply_transition(t, target)
    session.commit()
    logger.info('Ticket %s moved to %s', t.ticket_number, t.status)
    return t


@tickets_bp.post('/<int:ticket_id>/submit')
@require_permissions('TKT.SUBMIT')
@audit_log('TKT.SUBMIT', entity='ServiceTicket', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')), meta_keys=['ticket_number'])
def submit_ticket(ticket_id: int):
    return _ticket_response(_transition(ticket_id, T.STATUS_SUBMITTED, allowed_from=T.EDITABLE_STATUSES))


@tickets_bp.post('/<int:ticket_id>/start')
@require_permissions('TKT.WORK')
@audit_log('TKT.START', entity='ServiceTicket', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')), meta_keys=['ticket_number'])
def start_ticket(ticket_id: int):
    return _ticket_response(_transition(ticket_id, T.STATUS_IN_PROGRESS))


@tickets_bp.post('/<int:ticket_id>/complete')
@require_permissions('TKT.WORK')
@audit_log('TKT.COMPLETE', entity='ServiceTicket', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')), meta_keys=['ticket_number', 'actual_total_cost'])
def complete_ticket(ticket_id: int):
    session = get_db()
    data = request.get_json(silent=True) or {}
    actual = parse_optional_decimal(data.get('actual_total_cost'), 'actual_total_cost')
    notes = optional_text(data.get('completion_notes'))
    t = _load_ticket(ticket_id)
    _check_version(t)
    apply_transition(t, T.STATUS_COMPLETED)
    if actual is not None:
        t.actual_total_cost = actual
    if notes is not None:
        t.completion_notes = notes
    session.commit()
    logger.info('Ticket %s completed', t.ticket_number)
    return _ticket_response(t)


@tickets_bp.post('/<int:ticket_id>/cancel')
@require_permissions('TKT.CANCEL')
@audit_log('TKT.CANCEL', entity='ServiceTicket', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')), meta_keys=['ticket_number'])
def cancel_ticket(ticket_id: int):
    return _ticket_response(_transition(ticket_id, T.STATUS_CANCELLED))
