"""
CasePilot Escalation Router

Finds the next escalation step for a task held by a given role.

Lookup order:
1. The registered path for (role, current_level + 1), if its conditions hold
2. Otherwise, when no path is registered for that key, the next role up
   the staff hierarchy (assistant -> attorney -> admin)

Admins have no role above them; escalating past admin yields no step.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..models import EscalationPath, UserRole
from ..store import EscalationRegistry
from .condition_evaluator import ConditionEvaluator
from .state_machine import role_rank

logger = logging.getLogger(__name__)

# Roles that can receive escalated work, lowest authority first
STAFF_HIERARCHY: list[UserRole] = [
    UserRole.ASSISTANT,
    UserRole.ATTORNEY,
    UserRole.ADMIN,
]


def next_role_up(role: UserRole, hierarchy: Optional[list[UserRole]] = None) -> Optional[UserRole]:
    """Lowest role in the hierarchy that outranks ``role``."""
    rank = role_rank(role)
    for candidate in hierarchy or STAFF_HIERARCHY:
        if role_rank(candidate) > rank:
            return candidate
    return None


@dataclass
class EscalationRouter:
    """
    Resolves escalation steps from a registry of paths.

    Usage:
        router = EscalationRouter(registry)
        step = router.next_step(UserRole.ASSISTANT, current_level=0, root=facts)
        if step is not None:
            print(f"escalate to {step.to_role.value}")
    """

    registry: EscalationRegistry
    evaluator: ConditionEvaluator = field(default_factory=ConditionEvaluator)
    hierarchy: list[UserRole] = field(default_factory=lambda: list(STAFF_HIERARCHY))
    fallback_to_hierarchy: bool = True

    def path_for(self, role: UserRole, level: int) -> Optional[EscalationPath]:
        role = UserRole(role)
        for path in self.registry.list(from_role=role):
            if path.level == level:
                return path
        return None

    def next_step(
        self,
        role: UserRole,
        current_level: int,
        root: Optional[Any] = None,
    ) -> Optional[EscalationPath]:
        """
        Escalation path one level above ``current_level`` for ``role``.

        Returns:
            The registered path if its conditions hold, a synthesized
            hierarchy step if nothing is registered, otherwise None
        """
        role = UserRole(role)
        level = current_level + 1
        path = self.path_for(role, level)
        if path is not None:
            if self.evaluator.check(path.conditions, root or {}):
                return path
            logger.debug("Escalation path %s/L%d conditions not met", role.value, level)
            return None

        if not self.fallback_to_hierarchy:
            return None
        target = next_role_up(role, self.hierarchy)
        if target is None:
            return None
        return EscalationPath(level=level, from_role=role, to_role=target)

    def escalation_chain(self, role: UserRole, max_steps: int = 5) -> list[EscalationPath]:
        """
        Steps a task would take escalating repeatedly from ``role``,
        ignoring path conditions.
        """
        chain: list[EscalationPath] = []
        current = UserRole(role)
        level = 0
        seen = {current}
        while len(chain) < max_steps:
            level += 1
            path = self.path_for(current, level)
            if path is None and self.fallback_to_hierarchy:
                target = next_role_up(current, self.hierarchy)
                path = EscalationPath(level=level, from_role=current, to_role=target) if target else None
            if path is None or path.to_role in seen:
                break
            chain.append(path)
            seen.add(path.to_role)
            current = path.to_role
        return chain
