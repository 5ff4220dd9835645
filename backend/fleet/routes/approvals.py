from __future__ import annotations
from flask import Blueprint, request, abort, make_response, jsonify
from fleet import get_db
from fleet.decorators.auth import require_permissions, current_actor_id
from fleet.decorators.audit import audit_log
from fleet.models.service_ticket import ServiceTicket
from fleet.services.approvals import (ApprovalContext, DecisionForm, list_approval_queue, process_decision,
                                      approval_json)
from fleet.services.policy import assert_subsidiary_access
from fleet.services.tickets import ticket_json, ticket_etag
from fleet.utils.listing import compute_etag, make_resource_response, if_match_version
from fleet.utils.validation import blank, parse_optional_int

approvals_bp = Blueprint('approvals', __name__)


@approvals_bp.route('/queue', methods=['GET', 'HEAD'])
@require_permissions('TKT.READ')
def approval_queue():
    raw = request.args.get('subsidiary_id')
    if blank(raw):
        abort(400, description='subsidiary_id required')
    subsidiary_id = parse_optional_int(raw, 'subsidiary_id')
    assert_subsidiary_access(subsidiary_id)
    rows = list_approval_queue(get_db(), subsidiary_id)
    data = [ticket_json(t) for t in rows]
    # versions in the seed so a decision or edit on any queued ticket changes the tag
    marker = ','.join(f'{t.id}:{t.version}' for t in rows)
    etag = compute_etag([t.id for t in rows], len(rows), len(rows), 0, marker)
    # no Last-Modified: a ticket leaving the queue does not advance any listed timestamp
    return make_resource_response({'data': data, 'count': len(data)}, etag)


def _prefetch_status(ticket_id):
    t = get_db().get(ServiceTicket, ticket_id)
    return {'ticket.status': t.status} if t else {}


def _decision_meta(data, rv, args, kwargs):
    approval = data.get('approval') or {}
    return {
        'ticket_number': (data.get('ticket') or {}).get('ticket_number'),
        'approval_id': approval.get('id'),
        'action': approval.get('action'),
    }


@approvals_bp.post('/tickets/<int:ticket_id>/decision')
@require_permissions('TKT.APPROVE')
@audit_log('TKT.DECISION', entity='ServiceTicket', entity_id_key='ticket.id', subsidiary_id_key='ticket.subsidiary_id',
           meta_builder=_decision_meta, diff_keys=['ticket.status'],
           pre_fetch=lambda a, kw: _prefetch_status(kw.get('ticket_id')))
def decide(ticket_id: int):
    data = request.get_json(silent=True) or {}
    # form problems are reported before the ticket is even looked at
    form = DecisionForm.from_payload(data)
    expected_version = parse_optional_int(data.get('expected_version'), 'expected_version')
    if expected_version is None:
        expected_version = if_match_version()
    session = get_db()
    ticket = session.get(ServiceTicket, ticket_id)
    if ticket is None:
        abort(404, description='Ticket not found')
    subsidiary_id = parse_optional_int(data.get('subsidiary_id'), 'subsidiary_id')
    if subsidiary_id is None:
        subsidiary_id = ticket.subsidiary_id
    assert_subsidiary_access(subsidiary_id)
    ctx = ApprovalContext(actor_id=current_actor_id(), subsidiary_id=subsidiary_id)
    ticket, approval = process_decision(session, ctx, ticket_id, form, expected_version=expected_version)
    resp = make_response(jsonify({'ticket': ticket_json(ticket), 'approval': approval_json(approval)}))
    resp.headers['ETag'] = ticket_etag(ticket)
    return resp
