"""Read access to bot and integration configuration."""

from __future__ import annotations

from abc import ABC, abstractmethod

from aether_chat.config import ActionConfig, AppConfig, BotConfig, DepartmentBot, IntegrationConfig
from aether_chat.log import get_logger

logger = get_logger(__name__)


class ConfigRepository(ABC):
    """Eventually-consistent configuration reads.

    Returned models are frozen snapshots; later edits to the source never
    change an object a session already holds. ``generation`` changes whenever
    the source does, so callers caching derived objects know to rebuild them.
    """

    @property
    def generation(self) -> int:
        return 0

    @abstractmethod
    async def get_bot_by_id(self, bot_id: str) -> BotConfig | None:
        ...

    @abstractmethod
    async def get_integration_by_id(self, integration_id: str) -> IntegrationConfig | None:
        ...

    async def get_actions_for_bot(self, bot_id: str) -> list[ActionConfig]:
        bot = await self.get_bot_by_id(bot_id)
        return list(bot.actions) if bot else []

    async def get_department_bots(self, integration_id: str) -> list[DepartmentBot]:
        integration = await self.get_integration_by_id(integration_id)
        return list(integration.department_bots) if integration else []


class InMemoryConfigRepository(ConfigRepository):
    """Serves configuration straight from a loaded AppConfig."""

    def __init__(self, config: AppConfig):
        self._bots: dict[str, BotConfig] = {}
        self._integrations: dict[str, IntegrationConfig] = {}
        self._generation = -1
        self.reload(config)

    @property
    def generation(self) -> int:
        return self._generation

    def reload(self, config: AppConfig) -> None:
        """Swap in a new configuration.

        Running sessions keep their old snapshots; sessions opened afterwards
        see the new one.
        """
        self._bots = {b.id: b for b in config.bots}
        self._integrations = {i.id: i for i in config.integrations}
        self._generation += 1
        logger.info(
            "config_repository_loaded",
            generation=self._generation,
            bot_count=len(self._bots),
            integration_count=len(self._integrations),
        )

    async def get_bot_by_id(self, bot_id: str) -> BotConfig | None:
        return self._bots.get(bot_id)

    async def get_integration_by_id(self, integration_id: str) -> IntegrationConfig | None:
        return self._integrations.get(integration_id)

    def bot_ids(self) -> list[str]:
        return list(self._bots.keys())

    def integration_ids(self) -> list[str]:
        return list(self._integrations.keys())
