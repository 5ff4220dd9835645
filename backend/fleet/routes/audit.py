from flask import Blueprint, request, abort
from fleet import get_db
from fleet.decorators.auth import require_permissions
from fleet.models.audit import AuditLog
from fleet.services.policy import scoped_subsidiary_ids, filter_query_by_subsidiaries
from fleet.utils.listing import apply_pagination, make_cached_list_response, handle_conditional, iso_z

audit_bp = Blueprint('audit', __name__)


def _audit_query():
    session = get_db()
    q = session.query(AuditLog)
    q = filter_query_by_subsidiaries(q, AuditLog.subsidiary_id, scoped_subsidiary_ids())
    actor = request.args.get('actor_user_id')
    if actor:
        try:
            q = q.filter(AuditLog.actor_user_id==int(actor))
        except ValueError:
            abort(400, description='actor_user_id must be int')
    for name in ('action', 'entity', 'entity_id'):
        value = request.args.get(name)
        if value:
            q = q.filter(getattr(AuditLog, name)==value)
    return q.order_by(AuditLog.id.desc())


def _audit_json(r: AuditLog):
    return {
        'id': r.id,
        'actor_user_id': r.actor_user_id,
        'subsidiary_id': r.subsidiary_id,
        'action': r.action,
        'entity': r.entity,
        'entity_id': r.entity_id,
        'meta': r.meta,
        'created_at': iso_z(r.created_at),
    }


@audit_bp.route('/logs', methods=['GET', 'HEAD'])
@require_permissions('AUDIT.READ')
def list_audit_logs():
    paged_q, total, limit, offset = apply_pagination(_audit_query())
    rows = paged_q.all()
    # ETag seed includes ids sequence + top record timestamp so new entries invalidate it
    latest_ts = rows[0].created_at if rows else None
    resp, etag = make_cached_list_response([_audit_json(r) for r in rows], total, limit, offset, latest_ts)
    cond = handle_conditional(etag, latest_ts)
    if cond:
        cond.set_data(b'')
        return cond
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp
