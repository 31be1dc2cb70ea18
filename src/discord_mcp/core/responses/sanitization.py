"""Client-safe wording for exceptions no gateway translator claimed.

Anything reaching here is unexpected: a bug in a handler, a discord.py
internal, or a socket problem below the gateway layer. The exception text
can carry tokens, URLs or object reprs, so it never goes back to the client;
only a fixed phrase does. The caller logs the full traceback.
"""

import asyncio
from typing import Tuple, Type

# First match wins, so subclasses sit above their bases.
_SAFE_MESSAGES: Tuple[Tuple[Type[BaseException], str], ...] = (
    (asyncio.TimeoutError, "Discord did not answer in time"),
    (ConnectionError, "Lost the connection to Discord while handling the request"),
    (OSError, "Network error while talking to Discord"),
    (KeyError, "Discord returned a payload missing an expected field"),
    (ValueError, "Discord returned a value the server could not interpret"),
    (TypeError, "Discord returned data of an unexpected shape"),
)

_FALLBACK = "Unexpected error while talking to Discord"


def sanitize_error_message(
    exc: BaseException,
    context: str = "",
    include_type: bool = False,
) -> str:
    """Return a fixed message describing ``exc`` without repeating its text.

    ``context`` names the operation and is prefixed when given. With
    ``include_type`` the exception class name is appended in parentheses,
    which is harmless and helps match client reports to server logs.
    """
    message = next((text for exc_type, text in _SAFE_MESSAGES if isinstance(exc, exc_type)), _FALLBACK)
    if context:
        message = f"{context}: {message}"
    if include_type:
        message = f"{message} ({type(exc).__name__})"
    return message
