from __future__ import annotations
"""Finite state machine utility for enforcing allowed status transitions.

Usage:
    from fleet.utils.fsm import TransitionValidator
    TICKET_FSM = TransitionValidator({
        'draft': {'submitted', 'cancelled'},
        'submitted': {'approved', 'rejected', 'submitted', 'cancelled'},
        ...
    })
    TICKET_FSM.assert_can_transition(current_status, target_status)

Raises 400 abort if invalid.
"""
from typing import Dict, List, Set
from flask import abort

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True

    def states(self) -> List[str]:
        return list(self.graph.keys())

    def as_table(self) -> Dict[str, List[str]]:
        """Deterministic {state: sorted targets} view (used for API docs)."""
        return {state: sorted(targets) for state, targets in self.graph.items()}

__all__ = ['TransitionValidator']
