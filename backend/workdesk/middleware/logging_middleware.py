"""
Request logging middleware.

Pure ASGI (no BaseHTTPMiddleware) so long-running chat requests are not
buffered by the middleware. Every request gets an ``X-Request-ID`` header
(echoed from the client when present). Bodies are only logged at DEBUG
level and pass through the sensitive-key filter first.
"""

import json
import logging
import time
import uuid
from typing import Iterable, List, Optional, Tuple

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = b"x-request-id"
MAX_LOGGED_BODY = 2000


def _header(headers: Iterable[Tuple[bytes, bytes]], name: bytes) -> Optional[str]:
    for key, value in headers:
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def _body_for_log(chunks: List[bytes]) -> Optional[str]:
    """Render a captured body for the debug log, JSON bodies are filtered."""
    raw = b"".join(chunks)
    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    try:
        text = json.dumps(filter_sensitive_data(json.loads(text)), ensure_ascii=False)
    except json.JSONDecodeError:
        pass
    return truncate_large_data(text, max_length=MAX_LOGGED_BODY)


def _error_detail(chunks: List[bytes]) -> Optional[str]:
    """Pull ``detail`` out of an error response produced by the API."""
    try:
        payload = json.loads(b"".join(chunks) or b"null")
    except json.JSONDecodeError:
        return None
    if isinstance(payload, dict) and payload.get("detail"):
        return truncate_large_data(str(payload["detail"]), max_length=300)
    return None


class RequestLoggingMiddleware:
    """Logs one line per request with status and duration."""

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[list] = None,
        body_exclude_prefixes: Optional[list] = None,
    ):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths that are not logged at all (e.g. ["/health"])
            body_exclude_prefixes: Path prefixes whose bodies are never logged
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]
        self.body_exclude_prefixes = body_exclude_prefixes or ["/billing"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        method = scope.get("method", "UNKNOWN")
        request_id = _header(scope.get("headers", []), REQUEST_ID_HEADER) or uuid.uuid4().hex
        capture_bodies = logger.isEnabledFor(logging.DEBUG) and not any(
            path.startswith(prefix) for prefix in self.body_exclude_prefixes
        )
        started = time.perf_counter()

        request_chunks: List[bytes] = []
        response_chunks: List[bytes] = []
        status_code = 0

        async def receive_wrapper() -> Message:
            message = await receive()
            if capture_bodies and message["type"] == "http.request":
                request_chunks.append(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER, request_id.encode("latin-1")))
                message = {**message, "headers": headers}
            elif message["type"] == "http.response.body" and (capture_bodies or status_code >= 400):
                response_chunks.append(message.get("body", b""))
            await send(message)

        fields = {"request_id": request_id, "method": method, "path": path}
        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as e:
            fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.error(
                f"Request failed: {method} {path} - {e}",
                exc_info=True,
                extra={"extra_fields": fields},
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        fields.update({"status_code": status_code, "duration_ms": round(duration_ms, 2)})

        if capture_bodies:
            logger.debug(
                f"Request {request_id} bodies",
                extra={"extra_fields": {
                    "request_id": request_id,
                    "request_body": _body_for_log(request_chunks),
                    "response_body": _body_for_log(response_chunks),
                }},
            )

        message = f"{method} {path} - {status_code} ({duration_ms:.2f}ms)"
        if status_code >= 400:
            detail = _error_detail(response_chunks)
            if detail:
                fields["error_detail"] = detail
                message += f" | {detail}"

        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, message, extra={"extra_fields": fields})
