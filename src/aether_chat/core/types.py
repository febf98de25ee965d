"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    MODEL = "model"


class ActionType(StrEnum):
    LINK = "link"
    PHONE = "phone"
    WHATSAPP = "whatsapp"
    HANDOFF = "handoff"


class Theme(StrEnum):
    DARK = "dark"
    LIGHT = "light"


class Position(StrEnum):
    LEFT = "left"
    RIGHT = "right"
