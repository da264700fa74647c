"""
NoSQL Sanitizer

Strips query-operator keys from untrusted structured input before it
reaches any data-access call.

Two independent checks:
- sanitize(): structural. Any object key containing ``$`` or ``.`` is
  dropped together with its value, and a field whose object value held
  only such keys is dropped as well. Arrays keep order and length.
- detect(): textual. Scans the serialized input for known operator
  patterns and reports them without touching the input.

Policy is sanitize-and-continue: nothing here rejects a request.
"""

import json
import logging
import re
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

OPERATOR_MARKER = "$"
PATH_SEPARATOR = "."

REQUEST_PATH_PREVIEW = 100
INPUT_PREVIEW = 200

DANGEROUS_PATTERNS = [
    re.compile(r"\$where", re.IGNORECASE),
    re.compile(r"\$ne", re.IGNORECASE),
    re.compile(r"\$gt", re.IGNORECASE),
    re.compile(r"\$lt", re.IGNORECASE),
    re.compile(r"\$gte", re.IGNORECASE),
    re.compile(r"\$lte", re.IGNORECASE),
    re.compile(r"\$in", re.IGNORECASE),
    re.compile(r"\$nin", re.IGNORECASE),
    re.compile(r"\$regex", re.IGNORECASE),
    re.compile(r"\$exists", re.IGNORECASE),
    re.compile(r"\$type", re.IGNORECASE),
    re.compile(r"\$mod", re.IGNORECASE),
    re.compile(r"\$all", re.IGNORECASE),
    re.compile(r"\$size", re.IGNORECASE),
    re.compile(r"\$elemMatch", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
]


def is_dangerous_key(key: Any) -> bool:
    key = str(key)
    return OPERATOR_MARKER in key or PATH_SEPARATOR in key


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


class NoSQLSanitizer:
    def __init__(self, patterns: Optional[List[re.Pattern]] = None):
        self.patterns = patterns if patterns is not None else DANGEROUS_PATTERNS

    def sanitize(self, value: Any, path: str = "root", request_path: Optional[str] = None) -> Any:
        """Return a copy of ``value`` with every operator/dotted key removed."""
        if isinstance(value, dict):
            clean = {}
            for key, item in value.items():
                if is_dangerous_key(key):
                    self._log_blocked_key(key, path, request_path)
                    continue
                cleaned = self.sanitize(item, f"{path}.{key}", request_path)
                if isinstance(item, dict) and item and not cleaned:
                    # Value was nothing but operators: drop the field itself
                    self._log_blocked_key(key, path, request_path)
                    continue
                clean[key] = cleaned
            return clean

        if isinstance(value, list):
            return [
                self.sanitize(item, f"{path}[{index}]", request_path)
                for index, item in enumerate(value)
            ]

        return value

    def detect(self, value: Any, path: str = "root", request_path: Optional[str] = None) -> List[str]:
        """Report which known operator patterns occur in the serialized input."""
        if value is None:
            return []

        serialized = _serialize(value)
        matches = [pattern.pattern for pattern in self.patterns if pattern.search(serialized)]

        if matches:
            logger.warning(
                f"Potential NoSQL injection detected: path={path} "
                f"request_path={_truncate(request_path, REQUEST_PATH_PREVIEW)} "
                f"patterns={','.join(matches)} "
                f"preview={_truncate(serialized, INPUT_PREVIEW)!r}"
            )
        return matches

    def _log_blocked_key(self, key: Any, path: str, request_path: Optional[str]) -> None:
        logger.warning(
            f"Blocked NoSQL operator key: key={key!r} path={path} "
            f"request_path={_truncate(request_path, REQUEST_PATH_PREVIEW)}"
        )


def _truncate(text: Optional[str], limit: int) -> str:
    if text is None:
        return "-"
    return text if len(text) <= limit else text[:limit] + "..."


default_sanitizer = NoSQLSanitizer()


def sanitize(value: Any, path: str = "root", request_path: Optional[str] = None) -> Any:
    return default_sanitizer.sanitize(value, path, request_path)


def detect(value: Any, path: str = "root", request_path: Optional[str] = None) -> List[str]:
    return default_sanitizer.detect(value, path, request_path)
