"""Build the bootstrap configuration handed to the embedded widget runtime."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from aether_chat.config import BotConfig, IntegrationConfig, WidgetConfig
from aether_chat.core.types import Position, Theme
from aether_chat.errors import ConfigurationError
from aether_chat.log import get_logger

logger = get_logger(__name__)

MISSING_PUBLIC_KEY_WARNING = (
    "Public key is not set. The widget will not be able to fetch bot config, "
    "create conversations, or save messages."
)


def default_welcome_message(bot: BotConfig) -> str:
    """Welcome line the inline widget shows when the integration sets none."""
    return f"Hi there! I'm {bot.name}. How can I help you?"


class WidgetConfigObject(BaseModel):
    """The object assigned to ``window.AetherBotConfig`` on the host page.

    Either ``integration_id`` is set (the runtime fetches the rest) or the
    legacy inline fields are.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    supabase_url: str = Field(alias="supabaseUrl")
    api_url: str = Field(alias="apiUrl")
    integration_id: Optional[str] = Field(default=None, alias="integrationId")
    bot_id: Optional[str] = Field(default=None, alias="botId")
    theme: Optional[Theme] = None
    position: Optional[Position] = None
    brand_color: Optional[str] = Field(default=None, alias="brandColor")
    welcome_message: Optional[str] = Field(default=None, alias="welcomeMessage")
    collect_leads: Optional[bool] = Field(default=None, alias="collectLeads")
    supabase_anon_key: Optional[str] = Field(default=None, alias="supabaseAnonKey")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True, slots=True)
class WidgetSnapshot:
    config: WidgetConfigObject
    css_url: str
    js_url: str
    warnings: tuple[str, ...] = ()

    @property
    def is_compact(self) -> bool:
        return self.config.integration_id is not None

    def to_json(self) -> str:
        return json.dumps(self.config.to_dict(), indent=2)


def _default_cache_buster() -> str:
    return str(int(time.time() * 1000))


class SnapshotBuilder:
    """Pure function of (bot, integration, environment) apart from the asset cache buster."""

    def __init__(self, widget: WidgetConfig, cache_buster: Callable[[], str] | None = None):
        self._widget = widget
        self._cache_buster = cache_buster or _default_cache_buster

    def build(
        self,
        bot: BotConfig,
        integration: IntegrationConfig | None = None,
        legacy: bool = False,
    ) -> WidgetSnapshot:
        base_url = self._base_origin()
        fields: dict[str, Any] = {
            "supabase_url": base_url,
            "api_url": self._api_url(base_url),
        }

        if integration is not None and not legacy:
            fields["integration_id"] = integration.id
        else:
            appearance = integration or IntegrationConfig(id=bot.id, bot_id=bot.id)
            fields.update(
                bot_id=bot.id,
                theme=appearance.theme,
                position=appearance.position,
                brand_color=appearance.brand_color,
                welcome_message=appearance.welcome_message or default_welcome_message(bot),
                collect_leads=appearance.collect_leads,
            )

        warnings: list[str] = []
        public_key = self._public_key()
        if public_key:
            fields["supabase_anon_key"] = public_key
        else:
            warnings.append(MISSING_PUBLIC_KEY_WARNING)
            logger.warning("snapshot_missing_public_key", bot_id=bot.id)

        asset_root = base_url + "/" + self._widget.asset_path.strip("/")
        version = self._cache_buster()
        return WidgetSnapshot(
            config=WidgetConfigObject(**fields),
            css_url=f"{asset_root}/widget.css?v={version}",
            js_url=f"{asset_root}/widget.js?v={version}",
            warnings=tuple(warnings),
        )

    def _base_origin(self) -> str:
        if not self._widget.base_url:
            raise ConfigurationError("Widget base URL is not configured")
        parsed = urlparse(self._widget.base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ConfigurationError(f"Widget base URL is not absolute: {self._widget.base_url!r}")
        return f"{parsed.scheme}://{parsed.netloc}"

    def _api_url(self, base_url: str) -> str:
        if self._widget.netlify_url:
            return self._widget.netlify_url.rstrip("/") + "/.netlify/functions/chat"
        return f"{base_url}/functions/v1/proxy-ai"

    def _public_key(self) -> str | None:
        public_key = self._widget.public_key
        secret = self._widget.secret_key
        if public_key and secret is not None and public_key == secret.get_secret_value():
            raise ConfigurationError("The widget public key is the secret service key; refusing to embed it")
        return public_key
