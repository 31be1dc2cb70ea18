"""Coercion of raw TOML and environment values into config types."""

from typing import Any, List, Optional, Union

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})
_RETRY_FOREVER = frozenset({"unlimited", "none", "infinite", "-1"})


def _try_parse_bool(value: Any) -> Optional[bool]:
    """``True``/``False`` for recognised spellings, ``None`` otherwise."""
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE:
        return True
    if word in _FALSE:
        return False
    return None


def _parse_bool(value: Any) -> bool:
    parsed = _try_parse_bool(value)
    if parsed is None:
        raise ValueError(f"expected a boolean, got {value!r}")
    return parsed


def _parse_max_attempts(value: Union[str, int, None]) -> Optional[int]:
    """Reconnect attempt limit. ``None`` means keep retrying forever.

    Negative integers and the words in ``_RETRY_FOREVER`` also mean forever;
    ``0`` means give up after the first failure.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"max_attempts must be an integer or 'unlimited', got {value!r}")
    if isinstance(value, int):
        return value if value >= 0 else None

    word = str(value).strip().lower()
    if word in _RETRY_FOREVER:
        return None
    attempts = int(word)
    if attempts < 0:
        raise ValueError(f"max_attempts must be >= 0, got {attempts}")
    return attempts


def _parse_name_list(value: Union[str, List[str], None]) -> List[str]:
    """Tool or prompt names, from ``"a, b"`` or ``["a", "b"]``. Blanks dropped."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else [str(item) for item in value]
    return [name for name in (item.strip() for item in items) if name]
