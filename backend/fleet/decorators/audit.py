from __future__ import annotations
"""Audit logging decorator to avoid repeating add_audit() calls in route handlers.

Usage examples:

@audit_log('TKT.CREATE', entity='ServiceTicket', entity_id_key='id', meta_keys=['ticket_number', 'status'])
def create_ticket():
    ... return ticket_json(t), 201

@audit_log('TKT.SUBMIT', entity='ServiceTicket', entity_id_key='id', diff_keys=['status'],
           pre_fetch=lambda a, kw: _prefetch_ticket(kw.get('ticket_id')))
def submit_ticket(ticket_id): ...

Parameters:
  action: required audit action code (e.g. TKT.CREATE)
  entity: optional entity label (ServiceTicket, ServiceTicketApproval)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the view argument to use for entity_id (fallback if entity_id_key absent).
  subsidiary_id_key: key in the returned JSON object holding the subsidiary id.
  meta_keys: keys projected from the returned JSON into meta (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
      If provided it overrides meta_keys.
  diff_keys + pre_fetch: record before/after values of the listed keys under meta['changes'].

Only successful responses (status < 400) are audited. Errors raised by the view propagate untouched.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from flask import Response
from sqlalchemy.exc import SQLAlchemyError

from fleet.services.audit import add_audit
from fleet import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    status = 200
    data = rv
    if isinstance(rv, tuple) and rv:
        data = rv[0]
        if len(rv) > 1 and isinstance(rv[1], int):
            status = rv[1]
    if isinstance(data, Response):
        status = data.status_code
        data = data.get_json(silent=True)
    return data, status


def _lookup(data: Any, key: Optional[str]):
    """Resolve dotted keys ('ticket.id') inside nested response dicts."""
    if not key or not isinstance(data, dict):
        return None
    node: Any = data
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    subsidiary_id_key: Optional[str] = 'subsidiary_id',
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    commit: bool = True,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = _lookup(data, entity_id_key)
            if entity_id is None and entity_id_arg:
                entity_id = kwargs.get(entity_id_arg)
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs) or {}
            else:
                meta = {k: _lookup(data, k) for k in (meta_keys or []) if _lookup(data, k) is not None}
            if diff_keys and isinstance(before_snapshot, dict):
                changes = {}
                for k in diff_keys:
                    after = _lookup(data, k)
                    if k in before_snapshot and before_snapshot.get(k) != after:
                        changes[k] = {'before': before_snapshot.get(k), 'after': after}
                if changes:
                    meta['changes'] = changes
            add_audit(action, entity, entity_id, meta, subsidiary_id=_lookup(data, subsidiary_id_key))
            if commit:
                try:
                    get_db().commit()
                except SQLAlchemyError:
                    # the main change is already committed; losing its activity row is logged, not fatal
                    get_db().rollback()
                    logger.exception('Failed to persist audit entry %s', action)
            return rv
        return wrapper
    return outer
