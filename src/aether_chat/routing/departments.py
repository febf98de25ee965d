"""Route a widget visitor to the bot configured for their chosen department."""

from __future__ import annotations

from aether_chat.config import BotConfig, DepartmentBot, IntegrationConfig, check_unique_departments
from aether_chat.core.session import ChatSession
from aether_chat.errors import ConfigurationError, ResolutionError
from aether_chat.log import get_logger
from aether_chat.services.plans import PlanService
from aether_chat.services.repository import ConfigRepository

logger = get_logger(__name__)


class DepartmentRouter:
    """Resolves department names of one integration to bot configurations.

    Department names match case-insensitively. Duplicate names are rejected
    when the router is built, so every name maps to exactly one entry.
    Selection is only offered when the plan allows departmental bots;
    otherwise every visitor gets the integration's default bot.
    """

    def __init__(self, integration: IntegrationConfig, repo: ConfigRepository, plans: PlanService):
        check_unique_departments(integration.department_bots)
        self._integration = integration
        self._repo = repo
        self._plans = plans
        self._departments = {d.department_name.casefold(): d for d in integration.department_bots}
        self._plan_allows: bool | None = None

    @classmethod
    async def for_integration(
        cls,
        integration_id: str,
        repo: ConfigRepository,
        plans: PlanService,
    ) -> DepartmentRouter:
        integration = await repo.get_integration_by_id(integration_id)
        if integration is None:
            raise ConfigurationError(f"Unknown integration: {integration_id!r}")
        return cls(integration, repo, plans)

    @property
    def integration(self) -> IntegrationConfig:
        return self._integration

    async def departments_enabled(self) -> bool:
        if self._plan_allows is None:
            try:
                self._plan_allows = await self._plans.can_use_departments()
            except Exception as e:
                # Same as the free plan
                logger.warning("plan_lookup_failed", integration_id=self._integration.id, error=str(e))
                self._plan_allows = False
        return self._plan_allows and bool(self._departments)

    async def available_departments(self) -> list[DepartmentBot]:
        """Departments to offer the visitor, in configured order. Empty when gated."""
        if not await self.departments_enabled():
            return []
        return list(self._integration.department_bots)

    async def default_bot(self) -> BotConfig:
        bot = await self._repo.get_bot_by_id(self._integration.bot_id)
        if bot is None:
            raise ConfigurationError(
                f"Integration {self._integration.id!r} references missing bot {self._integration.bot_id!r}"
            )
        return bot

    async def resolve(self, department_name: str | None) -> BotConfig:
        """The bot for ``department_name``, falling back to the default bot."""
        if not department_name or not await self.departments_enabled():
            return await self.default_bot()
        try:
            return await self._resolve_department(department_name)
        except ResolutionError as e:
            logger.warning(
                "department_unresolved",
                integration_id=self._integration.id,
                department=department_name,
                error=e.detail,
            )
            return await self.default_bot()

    async def _resolve_department(self, department_name: str) -> BotConfig:
        entry = self._departments.get(department_name.casefold())
        if entry is None:
            raise ResolutionError(f"Unknown department {department_name!r}")
        bot = await self._repo.get_bot_by_id(entry.bot_id)
        if bot is None:
            raise ResolutionError(f"Department {department_name!r} points at missing bot {entry.bot_id!r}")
        return bot

    async def select(self, session: ChatSession, department_name: str) -> BotConfig:
        """Switch ``session`` to the department's bot.

        The session's open turn is cancelled and its history reset to the new
        bot's greeting. When the plan does not allow departments the session
        is left untouched.
        """
        if not await self.departments_enabled():
            logger.info(
                "department_selection_gated",
                integration_id=self._integration.id,
                department=department_name,
            )
            return session.bot

        bot = await self.resolve(department_name)
        await session.switch_bot(bot)
        logger.info(
            "department_selected",
            integration_id=self._integration.id,
            department=department_name,
            bot_id=bot.id,
        )
        return bot
