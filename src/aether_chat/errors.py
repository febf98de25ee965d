"""Error taxonomy for the chat engine.

Every error carries a short ``category`` and a human-readable ``user_message``
so the turn boundary can report it through a notifier without exposing the
underlying exception text or traceback.
"""

from __future__ import annotations


class AetherError(Exception):
    """Base class for all chat engine errors."""

    category = "Error"
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = "", *, user_message: str | None = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(AetherError):
    """Missing or invalid configuration (credential, base URL, default bot)."""

    category = "Configuration Error"
    user_message = "The chat service is not configured correctly. Please check your environment settings."


class DuplicateDepartmentError(ConfigurationError):
    """Two department entries share a name (case-insensitive)."""

    def __init__(self, department_name: str):
        super().__init__(f"Duplicate department name: {department_name!r}")
        self.department_name = department_name


class AuthenticationError(AetherError):
    """The session is invalid or expired."""

    category = "Authentication Error"
    user_message = "Please sign in again to continue."


class BackendError(AetherError):
    """The streaming call to the model backend failed."""

    category = "Connection Error"
    user_message = "The assistant could not be reached. Please try again."


class ResolutionError(AetherError):
    """An action id or department could not be resolved. Never fatal."""

    category = "Resolution Error"
    user_message = "The requested option is not available."
