"""Request-scoped user context for log correlation."""

from contextvars import ContextVar
from typing import Optional

# Context variable for the authenticated user id
user_id_var: ContextVar[Optional[int]] = ContextVar("user_id", default=None)


def set_user_context(user_id: int | None) -> None:
    """Set the current user context.

    Args:
        user_id: Authenticated user ID to set in context
    """
    user_id_var.set(user_id)


def get_user_context() -> int | None:
    """Get the current user context.

    Returns:
        Current user ID or None
    """
    return user_id_var.get()


def clear_user_context() -> None:
    """Clear the current user context."""
    user_id_var.set(None)
