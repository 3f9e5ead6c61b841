from __future__ import annotations

from typing import Any


__all__ = [
    "FunnelBotError",
    "NavigationError",
    "SessionClosedError",
    "is_session_closed_error",
]


# Playwright reports "Target closed" or "... has been closed" once the session is gone
SESSION_CLOSED_MARKER = "closed"


class FunnelBotError(Exception):
    """Base class for funnel runner errors."""


class NavigationError(FunnelBotError):
    """The funnel start page could not be loaded, even after a retry."""


class SessionClosedError(FunnelBotError):
    """The browser page was closed while the run was in progress."""


def is_session_closed_error(error: BaseException, page: Any = None) -> bool:
    """
    Check whether an error means the browser session is gone.

    Args:
        error: Exception raised by a Playwright call.
        page: Optional page to ask directly via is_closed().

    Returns:
        True if the run cannot continue on this page.
    """
    if isinstance(error, SessionClosedError):
        return True
    if page is not None:
        try:
            if page.is_closed() is True:
                return True
        except Exception:
            return True
    message = str(error)
    return SESSION_CLOSED_MARKER in message.lower()
