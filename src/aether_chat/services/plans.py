"""Subscription plan collaborator, consulted only as a capability check."""

from __future__ import annotations

from abc import ABC, abstractmethod

from aether_chat.config import PlanConfig


class PlanService(ABC):

    @abstractmethod
    async def can_use_departments(self) -> bool:
        """Whether the current plan allows departmental bots."""
        ...


class StaticPlanService(PlanService):
    """Answers capability checks from the plan section of the config file."""

    def __init__(self, plan: PlanConfig):
        self._plan = plan

    @property
    def plan_name(self) -> str:
        return self._plan.name

    async def can_use_departments(self) -> bool:
        return self._plan.allow_departmental_bots
