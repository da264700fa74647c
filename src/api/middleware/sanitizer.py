"""
Input boundary sanitization.

``NoSQLSanitizerMiddleware`` rewrites the JSON or form body and the query
string before routing; ``sanitize_path_params`` does the same for path
parameters once the router has extracted them. Both run detection first
so the original input is what gets logged.
"""

import json
import logging
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from fastapi import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from src.api.middleware.body import content_type, read_body, replay_body, with_content_length
from src.app.security.sanitizer import NoSQLSanitizer, default_sanitizer, is_dangerous_key

logger = logging.getLogger(__name__)


def _parse_pairs(raw: bytes) -> List[Tuple[str, str]]:
    """Undecodable bytes survive as surrogates so re-encoding restores them."""
    return parse_qsl(
        raw.decode("utf-8", "surrogateescape"),
        keep_blank_values=True,
        encoding="utf-8",
        errors="surrogateescape",
    )


def _encode_pairs(pairs: List[Tuple[str, str]]) -> bytes:
    return urlencode(pairs, encoding="utf-8", errors="surrogateescape").encode("ascii")


def _filter_pairs(
    sanitizer: NoSQLSanitizer, pairs: List[Tuple[str, str]], path: str, request_path: str
) -> Optional[List[Tuple[str, str]]]:
    """Drop operator keys from decoded pairs; ``None`` when nothing changed."""
    sanitizer.detect(dict(pairs), path, request_path)
    kept = [(key, value) for key, value in pairs if not is_dangerous_key(key)]
    if len(kept) == len(pairs):
        return None
    for key, _ in pairs:
        if is_dangerous_key(key):
            logger.warning(f"Blocked NoSQL operator key: key={key!r} path={path} request_path={request_path[:100]}")
    return kept


class NoSQLSanitizerMiddleware:
    def __init__(self, app: ASGIApp, sanitizer: NoSQLSanitizer = default_sanitizer):
        self.app = app
        self.sanitizer = sanitizer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_path = scope.get("path", "")

        query_string = scope.get("query_string", b"")
        if query_string:
            pairs = _parse_pairs(query_string)
            kept = _filter_pairs(self.sanitizer, pairs, "req.query", request_path)
            if kept is not None:
                scope = {**scope, "query_string": _encode_pairs(kept)}

        media_type = content_type(scope)
        if media_type.startswith("application/json") or media_type.startswith(
            "application/x-www-form-urlencoded"
        ):
            body = await read_body(receive)
            clean = self._sanitize_body(body, media_type, request_path)
            if clean is not body:
                scope = with_content_length(scope, len(clean))
            receive = replay_body(clean, receive)

        await self.app(scope, receive, send)

    def _sanitize_body(self, body: bytes, media_type: str, request_path: str) -> bytes:
        if not body:
            return body

        if media_type.startswith("application/json"):
            try:
                payload = json.loads(body)
            except ValueError:
                # Malformed JSON is left for the route's own validation to reject
                return body
            if not isinstance(payload, (dict, list)):
                return body
            self.sanitizer.detect(payload, "req.body", request_path)
            clean = self.sanitizer.sanitize(payload, "req.body", request_path)
            if clean == payload:
                return body
            return json.dumps(clean).encode("utf-8")

        pairs = _parse_pairs(body)
        kept = _filter_pairs(self.sanitizer, pairs, "req.body", request_path)
        if kept is None:
            return body
        return _encode_pairs(kept)


async def sanitize_path_params(request: Request) -> None:
    """App-wide dependency: strip operator keys from extracted path parameters."""
    params = request.scope.get("path_params")
    if not params:
        return
    request_path = request.url.path
    default_sanitizer.detect(params, "req.params", request_path)
    request.scope["path_params"] = default_sanitizer.sanitize(params, "req.params", request_path)
