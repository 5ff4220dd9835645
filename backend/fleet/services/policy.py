from __future__ import annotations
from typing import List, Set
from flask import abort
from flask_jwt_extended import get_jwt
from sqlalchemy import select
from fleet.models.authz import UserRole, RolePermission, GroupRole, UserGroup, Permission, Role, Group
from fleet import get_db


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def compute_effective_permissions(user_id: int):
    session = get_db()
    # Direct roles
    direct_role_ids = [r.role_id for r in session.execute(select(UserRole).where(UserRole.user_id==user_id)).scalars()]
    # Group roles
    group_ids = [ug.group_id for ug in session.execute(select(UserGroup).where(UserGroup.user_id==user_id)).scalars()]
    group_role_ids = []
    if group_ids:
        group_role_ids = [gr.role_id for gr in session.execute(select(GroupRole).where(GroupRole.group_id.in_(group_ids))).scalars()]
    role_ids = set(direct_role_ids + group_role_ids)
    perm_codes = set()
    if role_ids:
        role_perms = session.execute(select(RolePermission).where(RolePermission.role_id.in_(role_ids))).scalars().all()
        perm_ids = [rp.permission_id for rp in role_perms]
        if perm_ids:
            for p in session.execute(select(Permission).where(Permission.id.in_(perm_ids))).scalars():
                perm_codes.add(p.code)
    # Owner wildcard: every known permission
    owner_role = session.execute(select(Role).where(Role.name=='Owner')).scalar_one_or_none()
    if owner_role and owner_role.id in role_ids:
        for p in session.execute(select(Permission)).scalars():
            perm_codes.add(p.code)
    return {
        'roles': sorted(role_ids),
        'perms': sorted(perm_codes),
        'groups': group_ids,
    }


def compute_subsidiary_ids(user_id: int) -> List[int]:
    """Aggregate allowed subsidiary ids from group.subsidiary_scope JSON: {"allow": [ids...]}. Unique & sorted."""
    session = get_db()
    subsidiary_ids = set()
    group_ids = [ug.group_id for ug in session.execute(select(UserGroup).where(UserGroup.user_id==user_id)).scalars()]
    if group_ids:
        for grp in session.execute(select(Group).where(Group.id.in_(group_ids))).scalars():
            scope = grp.subsidiary_scope or {}
            allow = scope.get('allow') if isinstance(scope, dict) else None
            if isinstance(allow, list):
                for s in allow:
                    if isinstance(s, int):
                        subsidiary_ids.add(s)
    return sorted(subsidiary_ids)


def scoped_subsidiary_ids() -> List[int]:
    """Subsidiaries the caller is limited to; empty means unscoped."""
    claims = get_jwt()
    return list(claims.get('subsidiary_ids') or [])


def filter_query_by_subsidiaries(query, model_subsidiary_column, subsidiary_ids):
    """Return query filtered by subsidiary ids if list not empty."""
    if subsidiary_ids:
        return query.filter(model_subsidiary_column.in_(subsidiary_ids))
    return query


def assert_subsidiary_access(subsidiary_id: int):
    allowed = scoped_subsidiary_ids()
    if not allowed:
        return  # No scoping
    if subsidiary_id not in allowed:
        abort(403, description='Subsidiary access denied')
