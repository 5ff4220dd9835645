from __future__ import annotations
"""Display tags for ticket status and priority. Presentation only."""
from typing import Dict

STATUS_TONES: Dict[str, str] = {
    'draft': 'gray',
    'submitted': 'blue',
    'approved': 'green',
    'rejected': 'red',
    'in_progress': 'yellow',
    'completed': 'emerald',
    'cancelled': 'muted',
}

PRIORITY_TONES: Dict[str, str] = {
    'critical': 'red',
    'high': 'orange',
    'medium': 'yellow',
    'low': 'green',
}

NEUTRAL_TONE = 'gray'


def _label(value: str) -> str:
    return value.replace('_', ' ')


def status_badge(status: str) -> Dict[str, str]:
    return {'value': status, 'label': _label(status), 'tone': STATUS_TONES.get(status, NEUTRAL_TONE)}


def priority_badge(priority: str) -> Dict[str, str]:
    return {'value': priority, 'label': _label(priority), 'tone': PRIORITY_TONES.get(priority, NEUTRAL_TONE)}


def badge_catalog() -> Dict[str, list]:
    return {
        'status': [status_badge(s) for s in STATUS_TONES],
        'priority': [priority_badge(p) for p in PRIORITY_TONES],
    }

__all__ = ['status_badge', 'priority_badge', 'badge_catalog', 'STATUS_TONES', 'PRIORITY_TONES']
