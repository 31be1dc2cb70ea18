"""Sensitive data redaction utilities.

Provides pattern-based redaction for bot tokens, webhook URLs, and other
secrets. Safe for use before logging or including text in error messages.
"""

import logging
import re
from typing import Any, Final, List, Optional, Tuple

SENSITIVE_PATTERNS: Final[List[Tuple[str, str]]] = [
    # Bot tokens: base64 user id, timestamp, HMAC
    (r"[MNO][A-Za-z\d_-]{23,27}\.[A-Za-z\d_-]{6}\.[A-Za-z\d_-]{27,40}", "BOT_TOKEN"),
    # Webhook URLs embed their token in the path
    (
        r"https://(?:ptb\.|canary\.)?discord(?:app)?\.com/api/webhooks/\d+/[A-Za-z\d_-]+",
        "WEBHOOK_URL",
    ),
    (r"(?i)\b(?:bot|bearer)\s+([A-Za-z\d_.\-]{20,})", "AUTH_HEADER"),
    (r"(?i)(token|secret|api[_-]?key)\s*[:=]\s*['\"]?([A-Za-z\d_.\-]{20,})['\"]?", "SECRET"),
]
"""Patterns for detecting sensitive data that should be redacted.

Each tuple contains:
- regex pattern: The pattern to match sensitive data
- label: A human-readable label for the type of sensitive data
"""

_COMPILED: Final[List[Tuple[re.Pattern, str]]] = [(re.compile(p), label) for p, label in SENSITIVE_PATTERNS]


def redact_sensitive_data(
    data: Any,
    *,
    patterns: Optional[List[Tuple[str, str]]] = None,
    redaction_format: str = "[REDACTED:{label}]",
    max_depth: int = 10,
) -> Any:
    """Recursively redact sensitive data from strings, dicts, and lists.

    Args:
        data: The data to redact (string, dict, list, or nested structure)
        patterns: Custom patterns to use (default: SENSITIVE_PATTERNS)
        redaction_format: Format string for redaction markers (uses {label})
        max_depth: Maximum recursion depth to prevent stack overflow

    Returns:
        A copy of ``data`` with matches replaced. Non-string leaves are
        returned unchanged.

    Example:
        >>> redact_sensitive_data("token=abcdefghijklmnopqrstuvwxyz")
        '[REDACTED:SECRET]'
    """
    compiled = _COMPILED if patterns is None else [(re.compile(p), label) for p, label in patterns]
    return _redact(data, compiled, redaction_format, max_depth)


def _redact(data: Any, compiled: List[Tuple[re.Pattern, str]], fmt: str, depth: int) -> Any:
    if depth <= 0:
        return data
    if isinstance(data, str):
        result = data
        for pattern, label in compiled:
            result = pattern.sub(fmt.format(label=label), result)
        return result
    if isinstance(data, dict):
        return {key: _redact(value, compiled, fmt, depth - 1) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return type(data)(_redact(item, compiled, fmt, depth - 1) for item in data)
    return data


class RedactionFilter(logging.Filter):
    """Logging filter that redacts secrets from the rendered message.

    Attach to handlers that leave the process (stderr, files) so a token
    echoed in an exception message never reaches the log sink.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_sensitive_data(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True
