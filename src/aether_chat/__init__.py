"""Conversation streaming and action-dispatch engine for embeddable AI chat widgets."""

__version__ = "0.3.0"
