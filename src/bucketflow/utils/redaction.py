"""
Credential redaction for log lines and dead-letter envelopes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

REDACTED = "***"

_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    # AWS access key ids (long-term and temporary)
    (re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b"), REDACTED),
    # Presigned URL query parameters
    (
        re.compile(r"(X-Amz-(?:Signature|Credential|Security-Token)=)[^&\s]+", re.IGNORECASE),
        r"\1" + REDACTED,
    ),
    # key=value / key: value pairs that look like secrets
    (
        re.compile(
            r"((?:aws_)?(?:secret(?:_access)?_key|secret|session_token|token|password|passwd|api_key)"
            r"[\"']?\s*[=:]\s*[\"']?)[^\s\"',;&]+",
            re.IGNORECASE,
        ),
        r"\1" + REDACTED,
    ),
)


def redact(message: str, secrets: Iterable[str] = ()) -> str:
    """
    Mask credential-like substrings in a message.

    Args:
        message: Text that may contain credentials
        secrets: Literal secret values to mask wherever they appear

    Returns:
        The message with secrets replaced by ``***``
    """
    result = message
    for secret in secrets:
        if secret:
            result = result.replace(secret, REDACTED)
    for pattern, replacement in _PATTERNS:
        result = pattern.sub(replacement, result)
    return result
