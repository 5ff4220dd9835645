"""Test seeding utilities to reduce duplication.

These helpers centralize creation of users, roles, permissions, groups with subsidiary scopes
and the fleet reference rows (subsidiaries, vehicles, vendors, tickets). The database is
shared by the whole session, so every subsidiary gets a unique code and callers should not
assume empty tables.
"""
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from uuid import uuid4
from typing import Iterable, Dict, List, Optional
from fleet import get_db
from fleet.models.authz import User, Role, Permission, RolePermission, Group, GroupRole, UserGroup, UserRole
from fleet.models.subsidiary import Subsidiary
from fleet.models.vehicle import Vehicle
from fleet.models.vendor import Vendor
from fleet.models.service_ticket import ServiceTicket


def ensure_permissions(codes: Iterable[str]):
    """Ensure each permission code exists; return dict code->Permission."""
    session = get_db()
    out: Dict[str, Permission] = {}
    for code in codes:
        obj = session.query(Permission).filter_by(code=code).one_or_none()
        if not obj:
            if '.' not in code:
                raise ValueError(f"Permission code '{code}' missing SERVICE.ACTION pattern")
            service, action = code.split('.', 1)
            obj = Permission(code=code, service=service, action=action, description=code)
            session.add(obj); session.flush()
        out[code] = obj
    session.commit()
    return out


def ensure_user(email: str, full_name: Optional[str] = None, password: str = 'pw') -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(full_name=full_name or email.split('@')[0], email=email, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def ensure_role(name: str, perm_codes: Iterable[str] = ()) -> Role:
    session = get_db()
    role = session.query(Role).filter_by(name=name).one_or_none()
    perms = ensure_permissions(perm_codes) if perm_codes else {}
    if not role:
        role = Role(name=name, is_system=False, description=name)
        session.add(role); session.flush()
    # attach any missing permissions
    existing_perm_ids = {rp.permission_id for rp in session.query(RolePermission).filter_by(role_id=role.id)}
    for p in perms.values():
        if p.id not in existing_perm_ids:
            session.add(RolePermission(role_id=role.id, permission_id=p.id))
    session.commit()
    return role


def ensure_user_role_assignment(user: User, role: Role):
    session = get_db()
    if not session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).one_or_none():
        session.add(UserRole(user_id=user.id, role_id=role.id)); session.commit()


def ensure_group(name: str, role: Role, subsidiary_ids: List[int]) -> Group:
    session = get_db()
    g = session.query(Group).filter_by(name=name).one_or_none()
    if not g:
        g = Group(name=name, description=name, subsidiary_scope={'allow': subsidiary_ids})
        session.add(g); session.flush()
        session.add(GroupRole(group_id=g.id, role_id=role.id)); session.commit()
    return g


def ensure_user_group_membership(user: User, group: Group):
    session = get_db()
    if not session.query(UserGroup).filter_by(user_id=user.id, group_id=group.id).one_or_none():
        session.add(UserGroup(user_id=user.id, group_id=group.id)); session.commit()


def seed_user_with_role_and_group(email: str, role_name: str, perm_codes: Iterable[str], group_name: str, subsidiary_ids: List[int]):
    """High level convenience: user + role(with perms) + group association + subsidiary scope."""
    user = ensure_user(email)
    role = ensure_role(role_name, perm_codes)
    ensure_user_role_assignment(user, role)
    group = ensure_group(group_name, role, subsidiary_ids)
    ensure_user_group_membership(user, group)
    return user, role, group


# ---------------- Fleet reference data ---------------- #
def create_subsidiary(name: str = 'Fleet Co') -> Subsidiary:
    """A fresh subsidiary; codes are unique per call so tests never share queues."""
    session = get_db()
    sub = Subsidiary(name=name, code=f'SUB-{uuid4().hex[:8]}')
    session.add(sub); session.commit()
    return sub


def ensure_vehicle(subsidiary: Subsidiary, vehicle_number: str = 'TRK-001', make: str = 'Volvo', model: str = 'FH16') -> Vehicle:
    session = get_db()
    v = session.query(Vehicle).filter_by(subsidiary_id=subsidiary.id, vehicle_number=vehicle_number).one_or_none()
    if not v:
        v = Vehicle(subsidiary_id=subsidiary.id, vehicle_number=vehicle_number, make=make, model=model)
        session.add(v); session.commit()
    return v


def ensure_vendor(subsidiary: Subsidiary, name: str = 'Main Street Garage', is_active: bool = True) -> Vendor:
    session = get_db()
    vendor = session.query(Vendor).filter_by(subsidiary_id=subsidiary.id, name=name).one_or_none()
    if not vendor:
        vendor = Vendor(subsidiary_id=subsidiary.id, name=name, is_active=is_active)
        session.add(vendor); session.commit()
    return vendor


def create_ticket(subsidiary: Subsidiary, vehicle: Vehicle, requester: User, status: str = ServiceTicket.STATUS_SUBMITTED,
                  submitted_minutes_ago: int = 0, **fields) -> ServiceTicket:
    """Insert a ticket directly (bypassing the API) in the given status.

    Non-idempotent; ticket numbers are random so they never collide with generated ones.
    """
    session = get_db()
    submitted_at = None
    if status != ServiceTicket.STATUS_DRAFT:
        submitted_at = datetime.now(timezone.utc) - timedelta(minutes=submitted_minutes_ago)
    values = dict(title='Brake noise', description='Squealing on front axle', priority='medium')
    values.update(fields)
    for key in ('estimated_total_cost', 'estimated_labor_cost', 'estimated_parts_cost'):
        if values.get(key) is not None:
            values[key] = Decimal(str(values[key]))
    t = ServiceTicket(
        ticket_number=f'TST-{uuid4().hex[:12]}',
        subsidiary_id=subsidiary.id,
        vehicle_id=vehicle.id,
        created_by=requester.id,
        status=status,
        submitted_at=submitted_at,
        **values,
    )
    session.add(t); session.commit(); session.refresh(t)
    return t


__all__ = [
    'ensure_permissions', 'ensure_user', 'ensure_role', 'ensure_user_role_assignment', 'ensure_group',
    'ensure_user_group_membership', 'seed_user_with_role_and_group', 'create_subsidiary', 'ensure_vehicle',
    'ensure_vendor', 'create_ticket'
]
