"""
Outgoing payload scrubbing.

Last line of defense before a payload leaves the client; the server-side
sanitizer remains authoritative.
"""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
JAVASCRIPT_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
UNSAFE_KEY_CHARS = re.compile(r"[$.]")

HTML_ESCAPES = {"<": "&lt;", ">": "&gt;", '"': "&quot;", "'": "&#x27;"}
HTML_ESCAPE_CHARS = re.compile(r"[<>\"']")


def _clean_string(value: str) -> str:
    value = SCRIPT_BLOCK.sub("", value)
    value = JAVASCRIPT_SCHEME.sub("", value)
    value = EVENT_HANDLER.sub("", value)
    return HTML_ESCAPE_CHARS.sub(lambda match: HTML_ESCAPES[match.group(0)], value)


def sanitize_outgoing(data: Any) -> Any:
    if isinstance(data, str):
        return _clean_string(data)

    if isinstance(data, dict):
        clean = {}
        for key, value in data.items():
            clean_key = UNSAFE_KEY_CHARS.sub("", str(key))
            if clean_key != key:
                logger.warning(f"Suspicious key sanitized: {key!r} -> {clean_key!r}")
            clean[clean_key] = sanitize_outgoing(value)
        return clean

    if isinstance(data, (list, tuple)):
        return [sanitize_outgoing(item) for item in data]

    return data
