"""Central enum-like definitions to avoid typos in permission/service strings.
Extend cautiously; never rename codes silently. Create new ones and deprecate old via migration if needed.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['TKT', 'AUDIT']

SERVICE_ACTIONS = {
    # WORK covers start/complete of approved tickets by the workshop side
    'TKT': ['READ', 'CREATE', 'UPDATE', 'DELETE', 'SUBMIT', 'APPROVE', 'WORK', 'CANCEL'],
    'AUDIT': ['READ'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_PRESETS: Dict[str, List[str]] = {
    'Requester': ['TKT.READ', 'TKT.CREATE', 'TKT.UPDATE', 'TKT.DELETE', 'TKT.SUBMIT', 'TKT.CANCEL'],
    'Approver': ['TKT.READ', 'TKT.APPROVE'],
    'Fleet Manager': [
        'TKT.READ', 'TKT.CREATE', 'TKT.UPDATE', 'TKT.DELETE', 'TKT.SUBMIT',
        'TKT.APPROVE', 'TKT.WORK', 'TKT.CANCEL',
        'AUDIT.READ',
    ],
    'Owner': ['*']
}
