"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

from aether_chat.core.types import ActionType, Position, Theme
from aether_chat.errors import DuplicateDepartmentError

_PHONE_PATTERN = re.compile(r"^\+?\d[\d\s\-()]*$")
_SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
_HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def _is_http_uri(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ActionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: ActionType
    label: str
    payload: str
    description: str = ""  # tells the model when to use the action
    trigger_message: Optional[str] = None

    @model_validator(mode="after")
    def _check_payload_shape(self) -> ActionConfig:
        match self.type:
            case ActionType.PHONE:
                if not _PHONE_PATTERN.match(self.payload):
                    raise ValueError(f"Action '{self.id}': phone payload must be digits, got {self.payload!r}")
            case ActionType.LINK | ActionType.WHATSAPP:
                if not _is_http_uri(self.payload):
                    raise ValueError(f"Action '{self.id}': {self.type} payload must be an http(s) URI")
        return self


class DepartmentBot(BaseModel):
    model_config = ConfigDict(frozen=True)

    department_name: str
    department_label: str
    bot_id: str

    @field_validator("department_name")
    @classmethod
    def _check_slug(cls, value: str) -> str:
        slug = value.strip().lower()
        if not _SLUG_PATTERN.match(slug):
            raise ValueError(f"Department name must be a URL-safe slug, got {value!r}")
        return slug


def check_unique_departments(entries: Iterable[DepartmentBot]) -> None:
    """Raise DuplicateDepartmentError if two entries share a name, ignoring case."""
    seen: set[str] = set()
    for entry in entries:
        key = entry.department_name.casefold()
        if key in seen:
            raise DuplicateDepartmentError(entry.department_name)
        seen.add(key)


class BotConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    model: str = "claude-sonnet-4-20250514"
    provider: str = "anthropic"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = 1024
    system_instruction: str = ""
    knowledge_base: str = ""
    actions: tuple[ActionConfig, ...] = ()
    department_bots: tuple[DepartmentBot, ...] = ()

    @model_validator(mode="after")
    def _check_unique_ids(self) -> BotConfig:
        ids = [a.id for a in self.actions]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Bot '{self.id}' has duplicate action ids")
        check_unique_departments(self.department_bots)
        return self

    @property
    def greeting(self) -> str:
        return f"Hello! I am {self.name}. How can I assist you today?"

    def get_action(self, action_id: str) -> ActionConfig | None:
        return next((a for a in self.actions if a.id == action_id), None)


class IntegrationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    bot_id: str
    name: Optional[str] = None
    theme: Theme = Theme.DARK
    position: Position = Position.RIGHT
    brand_color: str = "#6366f1"
    welcome_message: Optional[str] = None
    collect_leads: bool = False
    department_bots: tuple[DepartmentBot, ...] = ()

    @field_validator("brand_color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        if not _HEX_COLOR_PATTERN.match(value):
            raise ValueError(f"brand_color must be a hex color, got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_departments(self) -> IntegrationConfig:
        check_unique_departments(self.department_bots)
        return self


class PlanConfig(BaseModel):
    name: str = "Free"
    allow_departmental_bots: bool = False


class WidgetConfig(BaseModel):
    base_url: Optional[str] = None
    netlify_url: Optional[str] = None
    public_key: Optional[str] = None  # anon key, safe to embed
    secret_key: Optional[SecretStr] = None  # service key, never embedded
    asset_path: str = "/storage/v1/object/public/Assets/public"

    @field_validator("base_url", "netlify_url", "public_key", mode="before")
    @classmethod
    def _unset_to_none(cls, value: Optional[str]) -> Optional[str]:
        # Unresolved ${VAR} placeholders count as not configured
        if value is None or not str(value).strip() or _ENV_VAR_PATTERN.fullmatch(str(value).strip()):
            return None
        return str(value).strip()


class AnthropicConfig(BaseModel):
    api_key: str
    base_url: Optional[str] = None
    max_retries: int = 0  # turns are never retried automatically
    timeout: int = 120


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_json: bool = False
    bots: list[BotConfig]
    integrations: list[IntegrationConfig] = Field(default_factory=list)
    plan: PlanConfig = Field(default_factory=PlanConfig)
    widget: WidgetConfig = Field(default_factory=WidgetConfig)
    anthropic: Optional[AnthropicConfig] = None


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        value = os.environ.get(match.group(1))
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")
    data = yaml.safe_load(_interpolate_env_vars(raw_text))

    return AppConfig(**data)
