#!/usr/bin/env python
"""Idempotent seed script for permissions, roles and fleet reference data.

Usage:
    python backend/scripts/seed_authz.py               # permissions, role presets, initial Owner
    python backend/scripts/seed_authz.py --demo        # plus a demo subsidiary, vehicles, vendor and users
    python backend/scripts/seed_authz.py --show-roles  # print role -> permission counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from fleet import create_app, get_db  # type: ignore
from fleet.models.authz import Base, Permission, Role, RolePermission, User, UserRole, Group, GroupRole, UserGroup
from fleet.models.subsidiary import Subsidiary
from fleet.models.vehicle import Vehicle
from fleet.models.vendor import Vendor
import fleet.models.audit  # noqa: F401
import fleet.models.service_ticket  # noqa: F401
import fleet.models.service_ticket_approval  # noqa: F401
from fleet.constants.permissions import SERVICE_ACTIONS, ROLE_PRESETS, build_all_permission_codes


def ensure_permissions(session):
    existing = {p.code for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            code = f"{svc}.{act}"
            if code not in existing:
                session.add(Permission(code=code, service=svc, action=act, description=code.replace('.', ' - ')))
                created += 1
    session.flush()
    return created


def ensure_roles(session):
    existing_roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLE_PRESETS:
        if role_name not in existing_roles:
            role = Role(name=role_name, is_system=True, description=role_name)
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    all_codes = set(build_all_permission_codes())
    perms_map = {p.code: p for p in session.execute(select(Permission)).scalars()}
    for role_name, codes in ROLE_PRESETS.items():
        role = existing_roles[role_name]
        # Expand wildcard for Owner
        desired_codes = all_codes if '*' in codes else set(codes)
        current_codes = {rp.permission.code for rp in role.permissions}
        for code in sorted(desired_codes - current_codes):
            if code not in perms_map:
                print(f"[WARN] Missing permission referenced by role {role_name}: {code}")
                continue
            session.add(RolePermission(role=role, permission=perms_map[code]))
    session.flush()
    return created


def ensure_user(session, email, full_name, password, role_name=None):
    user = session.execute(select(User).where(User.email==email)).scalar_one_or_none()
    if user:
        return user, False
    user = User(full_name=full_name, email=email)
    user.set_password(password)
    session.add(user)
    session.flush()
    if role_name:
        role = session.execute(select(Role).where(Role.name==role_name)).scalar_one()
        session.add(UserRole(user_id=user.id, role_id=role.id))
    return user, True


def ensure_initial_admin(session):
    if not session.execute(select(Role).where(Role.name=='Owner')).scalar_one_or_none():
        print('[WARN] Owner role missing; skipping admin user creation')
        return
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    _, created = ensure_user(session, admin_email, 'Owner', os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'), 'Owner')
    if created:
        print(f"[INFO] Created initial admin user {admin_email} with temporary password.")


def ensure_demo_fleet(session):
    """One subsidiary with two vehicles, a vendor, and a requester/approver pair scoped to it."""
    sub = session.execute(select(Subsidiary).where(Subsidiary.code=='DEMO')).scalar_one_or_none()
    if not sub:
        sub = Subsidiary(name='Demo Logistics', code='DEMO')
        session.add(sub)
        session.flush()
    for number, make, model in (('TRK-001', 'Volvo', 'FH16'), ('VAN-014', 'Ford', 'Transit')):
        if not session.execute(select(Vehicle).where(Vehicle.subsidiary_id==sub.id, Vehicle.vehicle_number==number)).scalar_one_or_none():
            session.add(Vehicle(subsidiary_id=sub.id, vehicle_number=number, make=make, model=model))
    if not session.execute(select(Vendor).where(Vendor.subsidiary_id==sub.id)).first():
        session.add(Vendor(subsidiary_id=sub.id, name='Main Street Garage', contact_email='service@garage.example'))
    group = session.execute(select(Group).where(Group.name=='Demo Fleet')).scalar_one_or_none()
    if not group:
        group = Group(name='Demo Fleet', description='Demo subsidiary staff', subsidiary_scope={'allow': [sub.id]})
        session.add(group)
        session.flush()
    password = os.getenv('SEED_DEMO_PASSWORD', 'ChangeMe123!')
    for email, name, role_name in (('requester@example.com', 'Demo Requester', 'Requester'),
                                   ('approver@example.com', 'Demo Approver', 'Approver')):
        user, _ = ensure_user(session, email, name, password, role_name)
        if not session.execute(select(UserGroup).where(UserGroup.user_id==user.id, UserGroup.group_id==group.id)).scalar_one_or_none():
            session.add(UserGroup(user_id=user.id, group_id=group.id))
    session.flush()
    print(f"[INFO] Demo subsidiary {sub.code} (id={sub.id}) ready.")


def print_role_summary(session):
    rows = []
    for role in session.execute(select(Role)).scalars().all():
        perms = sorted(rp.permission.code for rp in role.permissions)
        rows.append((role.name, len(perms), perms[:8]))
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed RBAC permissions, roles and demo fleet data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  with demo data: seed_authz.py --demo\n  dry run: seed_authz.py --dry-run\n""")
    )
    p.add_argument('--demo', action='store_true', help='Also create a demo subsidiary, vehicles, vendor and users')
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM permissions LIMIT 1'))
        except OperationalError:
            # Auto-create schema for bootstrap; in real env prefer alembic upgrade
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        session.commit()

        try:
            created_p = ensure_permissions(session)
            created_r = ensure_roles(session)
            ensure_initial_admin(session)
            if args.demo:
                ensure_demo_fleet(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Permissions would create: {created_p}, Roles would create: {created_r}")
            else:
                session.commit()
                print(f"[DONE] Permissions created: {created_p}, Roles created: {created_r}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
