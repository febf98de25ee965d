"""Shared fixtures: bot and integration configs, sessions with a fixed clock."""

from __future__ import annotations

import itertools

import pytest

from aether_chat.ai.client import ModelStreamClient
from aether_chat.ai.stream import StreamConsumer
from aether_chat.config import ActionConfig, AppConfig, BotConfig, DepartmentBot, IntegrationConfig, PlanConfig
from aether_chat.core.session import ChatSession
from helpers import RecordingNotifier


@pytest.fixture
def plain_bot() -> BotConfig:
    return BotConfig(id="plain", name="Plain", system_instruction="Be brief.")


@pytest.fixture
def support_bot() -> BotConfig:
    return BotConfig(
        id="support",
        name="Aria",
        actions=(
            ActionConfig(
                id="X",
                type="whatsapp",
                label="WhatsApp",
                payload="https://wa.me/15551234567",
                trigger_message="Opening WhatsApp...",
            ),
            ActionConfig(id="call", type="phone", label="Call us", payload="+1 555 123 4567"),
        ),
    )


@pytest.fixture
def sales_bot() -> BotConfig:
    return BotConfig(id="sales", name="Sol")


@pytest.fixture
def integration() -> IntegrationConfig:
    return IntegrationConfig(
        id="acme-site",
        bot_id="support",
        theme="light",
        brand_color="#0ea5e9",
        welcome_message="Hi!",
        collect_leads=True,
        department_bots=(
            DepartmentBot(department_name="support", department_label="Support", bot_id="support"),
            DepartmentBot(department_name="sales", department_label="Sales", bot_id="sales"),
        ),
    )


@pytest.fixture
def app_config(plain_bot, support_bot, sales_bot, integration) -> AppConfig:
    return AppConfig(
        bots=[plain_bot, support_bot, sales_bot],
        integrations=[integration],
        plan=PlanConfig(name="Pro", allow_departmental_bots=True),
        widget={"base_url": "https://proj.supabase.co/rest/v1", "public_key": "anon-key"},
    )


@pytest.fixture
def clock():
    counter = itertools.count(1_000, 10)
    return lambda: next(counter)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def make_session(notifier, clock):
    def _make(bot: BotConfig, client: ModelStreamClient) -> ChatSession:
        return ChatSession(bot, StreamConsumer(client), notifier, clock=clock)

    return _make
