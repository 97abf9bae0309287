
import logging
import secrets
import time
from threading import Lock
from typing import Callable, Dict, Optional, Tuple

from fastapi import Header, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


class RateLimiter:
    """
    Simple in-memory rate limiter using a fixed window algorithm.
    Tracks requests per identifier within a one-minute window.
    Expired windows are dropped at most once per window while counting.
    """

    window_seconds = 60

    def __init__(self, requests_per_minute: int = 10, clock: Callable[[], float] = time.monotonic):
        self.rpm = requests_per_minute
        self._clock = clock
        # identifier -> (count, window_start_time)
        self.requests: Dict[str, Tuple[int, float]] = {}
        self._lock = Lock()
        self._last_cleanup = clock()

    def hit(self, identifier: str) -> Tuple[bool, int]:
        """
        Count one request. Returns ``(allowed, retry_after_seconds)``.
        """
        now = self._clock()
        with self._lock:
            if now - self._last_cleanup >= self.window_seconds:
                self._drop_expired(now)

            count, start_time = self.requests.get(identifier, (0, now))

            if now - start_time >= self.window_seconds:
                self.requests[identifier] = (1, now)
                return True, 0

            if count >= self.rpm:
                return False, max(1, int(self.window_seconds - (now - start_time)))

            self.requests[identifier] = (count + 1, start_time)
            return True, 0

    def is_allowed(self, identifier: str) -> bool:
        return self.hit(identifier)[0]

    def cleanup(self):
        """Cleanup old entries to prevent memory leak"""
        with self._lock:
            self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> None:
        # caller holds the lock
        keys_to_delete = [k for k, v in self.requests.items() if now - v[1] >= self.window_seconds]
        for k in keys_to_delete:
            del self.requests[k]
        self._last_cleanup = now


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    allowed, retry_after = limiter.hit(_client_id(request))
    if not allowed:
        logger.warning(
            f"Rate limit exceeded for {_client_id(request)} on {request.url.path} "
            f"(limit {limiter.rpm}/minute)"
        )
        raise HTTPException(
            status_code=429,
            detail="Too many requests, please try again later.",
            headers={"Retry-After": str(retry_after)},
        )


def require_api_key(request: Request, x_api_key: Optional[str] = Header(default=None)) -> None:
    """
    Check ``X-API-Key`` against the configured key.

    In development with no key configured, authentication is skipped.
    """
    settings = request.app.state.settings
    if settings.is_development and not settings.api_key:
        return

    if not x_api_key:
        logger.warning(f"Missing API key from {_client_id(request)} on {request.url.path}")
        raise HTTPException(status_code=401, detail="Missing API key")

    if not settings.api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        logger.warning(f"Invalid API key from {_client_id(request)} on {request.url.path}")
        raise HTTPException(status_code=403, detail="Invalid API key")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id, rejects oversized bodies, logs every request and
    adds security headers to the response.

    A declared ``Content-Length`` over the limit is refused before the body is
    read. Bodies without one (chunked uploads) are counted as they arrive and
    fail with 413 once the limit is crossed.
    """

    def __init__(self, app, max_body_size: int):
        super().__init__(app)
        self.max_body_size = max_body_size

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await super().__call__(scope, receive, send)
            return

        received = 0

        async def limited_receive():
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body_size:
                    logger.warning(f"Request body exceeded {self.max_body_size} bytes while streaming")
                    raise HTTPException(status_code=413, detail="Request body too large")
            return message

        await super().__call__(scope, limited_receive, send)

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or f"req-{time.time_ns() // 1_000_000}"
        request.state.request_id = request_id
        started = time.perf_counter()

        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
            logger.warning(f"[{request_id}] Request body too large: {content_length} bytes")
            response = JSONResponse(
                status_code=413,
                content={"success": False, "error": "Request body too large"},
            )
        else:
            response = await call_next(request)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)")

        response.headers["X-Request-ID"] = request_id
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
