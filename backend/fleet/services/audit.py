from __future__ import annotations
from typing import Any, Dict, Optional
from flask_jwt_extended import get_jwt_identity, get_jwt
from fleet import get_db
from fleet.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None,
              meta: Optional[Dict[str, Any]] = None, subsidiary_id: Optional[int] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. TKT.CREATE, TKT.SUBMIT, TKT.DECISION
      entity: optional entity name (ServiceTicket, ServiceTicketApproval)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
      subsidiary_id: subsidiary the action happened in, when known
    """
    session = get_db()
    claims = {}
    try:
        claims = get_jwt() or {}
    except RuntimeError:
        pass  # no JWT context (e.g. scripts) – keep empty
    try:
        ident = get_jwt_identity()
        actor = int(ident) if ident is not None else None
    except RuntimeError:
        actor = None
    log = AuditLog(
        actor_user_id=actor or 0,
        subsidiary_id=subsidiary_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': claims.get('perms', [])},
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
