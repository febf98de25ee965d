"""Application orchestrator - wires configuration, collaborators and sessions."""

from __future__ import annotations

from aether_chat.ai.client import AnthropicStreamClient, ModelStreamClient
from aether_chat.ai.stream import StreamConsumer
from aether_chat.config import AppConfig, BotConfig
from aether_chat.core.session import ChatSession, SessionManager
from aether_chat.errors import ConfigurationError
from aether_chat.log import get_logger
from aether_chat.routing.departments import DepartmentRouter
from aether_chat.services.notify import LogNotifier, Notifier
from aether_chat.services.plans import PlanService, StaticPlanService
from aether_chat.services.repository import ConfigRepository, InMemoryConfigRepository
from aether_chat.widget.snapshot import SnapshotBuilder, WidgetSnapshot

logger = get_logger(__name__)

PLAYGROUND = "playground"


class AetherChatApp:
    """Top-level application orchestrator.

    Collaborators default to the config-backed implementations and can be
    replaced, e.g. with a hosted repository or a UI notifier.
    """

    def __init__(
        self,
        config: AppConfig,
        repo: ConfigRepository | None = None,
        plans: PlanService | None = None,
        notifier: Notifier | None = None,
        clients: dict[str, ModelStreamClient] | None = None,
    ):
        self.config = config
        self.repo = repo or InMemoryConfigRepository(config)
        self.plans = plans or StaticPlanService(config.plan)
        self.notifier = notifier or LogNotifier()
        self.snapshot_builder = SnapshotBuilder(config.widget)
        self._clients: dict[str, ModelStreamClient] = dict(clients or {})
        self._routers: dict[str, tuple[int, DepartmentRouter]] = {}
        self.sessions = SessionManager(self._create_session)

    def _create_session(self, bot: BotConfig) -> ChatSession:
        consumer = StreamConsumer(self._client_for(bot))
        return ChatSession(bot, consumer, self.notifier)

    def _client_for(self, bot: BotConfig) -> ModelStreamClient:
        """Create (once per provider) a streaming client for the bot's provider."""
        if bot.provider in self._clients:
            return self._clients[bot.provider]
        match bot.provider:
            case "anthropic":
                if not self.config.anthropic:
                    raise ConfigurationError(
                        f"Bot '{bot.id}' uses the 'anthropic' provider but "
                        "there is no 'anthropic' section in config"
                    )
                client = AnthropicStreamClient(self.config.anthropic)
            case _:
                raise ConfigurationError(f"Unknown AI provider: {bot.provider}")
        self._clients[bot.provider] = client
        return client

    async def router_for(self, integration_id: str) -> DepartmentRouter:
        """Router for the integration as of the repository's current generation."""
        generation = self.repo.generation
        cached = self._routers.get(integration_id)
        if cached is not None and cached[0] == generation:
            return cached[1]
        router = await DepartmentRouter.for_integration(integration_id, self.repo, self.plans)
        self._routers[integration_id] = (generation, router)
        if cached is not None:
            logger.info("router_rebuilt", integration_id=integration_id, generation=generation)
        return router

    async def open_session(
        self,
        integration_id: str,
        visitor_id: str,
        department: str | None = None,
    ) -> ChatSession:
        """Get or create a visitor's session, bound to the department's bot if given."""
        router = await self.router_for(integration_id)
        session = self.sessions.get(integration_id, visitor_id)
        if session is None:
            bot = await router.resolve(department)
            return self.sessions.open(integration_id, visitor_id, bot)
        if department and (await router.resolve(department)).id != session.bot.id:
            await router.select(session, department)
        return session

    async def select_department(self, integration_id: str, visitor_id: str, department: str) -> ChatSession:
        router = await self.router_for(integration_id)
        session = self.sessions.get(integration_id, visitor_id)
        if session is None:
            return await self.open_session(integration_id, visitor_id, department)
        await router.select(session, department)
        return session

    async def open_playground(self, bot_id: str) -> ChatSession:
        """A standalone session for trying out a bot outside any integration."""
        bot = await self.repo.get_bot_by_id(bot_id)
        if bot is None:
            raise ConfigurationError(f"Unknown bot: {bot_id!r}")
        await self.sessions.close(PLAYGROUND, bot_id)
        return self.sessions.open(PLAYGROUND, bot_id, bot)

    async def build_snapshot(
        self,
        integration_id: str | None = None,
        bot_id: str | None = None,
        legacy: bool = False,
    ) -> WidgetSnapshot:
        """Widget bootstrap config for an integration, or a bot in legacy form."""
        integration = None
        if integration_id:
            integration = await self.repo.get_integration_by_id(integration_id)
            if integration is None:
                raise ConfigurationError(f"Unknown integration: {integration_id!r}")
            bot_id = bot_id or integration.bot_id
        if not bot_id:
            raise ConfigurationError("Either an integration id or a bot id is required")
        bot = await self.repo.get_bot_by_id(bot_id)
        if bot is None:
            raise ConfigurationError(f"Unknown bot: {bot_id!r}")
        return self.snapshot_builder.build(bot, integration, legacy=legacy)

    async def stop(self) -> None:
        """Cancel every open turn and release clients."""
        await self.sessions.close_all()
        for client in self._clients.values():
            try:
                await client.close()
            except Exception as e:
                logger.error("client_close_error", error=str(e))
        logger.info("aether_chat_stopped")
