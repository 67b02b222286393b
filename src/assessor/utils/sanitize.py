"""Error message sanitization before errors are stored on analysis records."""

from __future__ import annotations

import os
import re

DEFAULT_MAX_LENGTH = 500


def sanitize_error(message: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Redact credentials and home paths, collapse whitespace, and truncate."""
    if not message:
        return message

    sanitized = message
    # Redact credential patterns
    sanitized = re.sub(r"(postgres(?:ql)?|mysql|redis|mongodb)://[^\s@]+@", r"\1://[REDACTED]@", sanitized)
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"(?i)(password|passwd|secret|token|api[-_]?key)\s*[=:]\s*\S+", r"\1=[REDACTED]", sanitized)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)

    # Redact user home paths
    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home != "/":
        sanitized = sanitized.replace(home, "[USER_HOME]")

    sanitized = re.sub(r"\s+", " ", sanitized).strip()

    if max_length > 0 and len(sanitized) > max_length:
        sanitized = sanitized[: max(max_length - 3, 0)].rstrip() + "..."

    return sanitized
