"""HTTP middleware: request context, security headers and per-IP rate limiting."""

import secrets
import time
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from docanchor.api.errors import unhandled_exception_handler

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def generate_request_id() -> str:
    """Request id of the form ``req_<epoch ms>_<8 hex chars>``."""
    return f"req_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def client_ip(request: Request) -> str:
    return (request.client.host if request.client else None) or "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign a request id, bind it to the log context and log one line per request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = generate_request_id()
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            # Answer here so the outer middlewares still add CORS and security headers
            response = await unhandled_exception_handler(request, e)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = round((time.perf_counter() - started) * 1000.0, 3)
        response.headers[REQUEST_ID_HEADER] = request_id

        log = logger.bind(request_id=request_id)
        log_kwargs = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        if response.status_code >= 500:
            log.error("http.request", **log_kwargs)
        elif response.status_code >= 400:
            log.warning("http.request", **log_kwargs)
        else:
            log.info("http.request", **log_kwargs)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        headers = response.headers
        headers.setdefault("X-Content-Type-Options", "nosniff")
        headers.setdefault("X-Frame-Options", "DENY")
        headers.setdefault("Referrer-Policy", "no-referrer")
        headers.setdefault(
            "Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
        )
        headers.setdefault("Cross-Origin-Resource-Policy", "same-site")
        if "application/json" in headers.get("Content-Type", ""):
            headers.setdefault("Cache-Control", "no-store")
        # HSTS only behind a TLS-terminating proxy
        if request.headers.get("X-Forwarded-Proto", "").lower() == "https":
            headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains")
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request limiter keyed by client IP.

    Counters live in process memory; each worker process limits independently.
    Every response carries ``RateLimit-Limit``, ``RateLimit-Remaining`` and
    ``RateLimit-Reset``; rejected requests also get ``Retry-After``.
    """

    def __init__(
        self,
        app: ASGIApp,
        max_requests: int = 100,
        window_seconds: int = 15 * 60,
        exempt_paths: tuple[str, ...] = ("/health",),
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.exempt_paths = exempt_paths
        self.clock = clock
        # ip -> (window start, request count)
        self._windows: dict[str, tuple[float, int]] = {}

    def _prune(self, now: float) -> None:
        expired = [
            ip for ip, (start, _) in self._windows.items() if now - start >= self.window_seconds
        ]
        for ip in expired:
            del self._windows[ip]

    def hit(self, ip: str) -> tuple[int, float]:
        """Count one request for ``ip``; return (count in window, seconds until reset)."""
        now = self.clock()
        self._prune(now)
        start, count = self._windows.get(ip, (now, 0))
        count += 1
        self._windows[ip] = (start, count)
        return count, max(0.0, start + self.window_seconds - now)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.exempt_paths or request.method == "OPTIONS":
            return await call_next(request)

        ip = client_ip(request)
        count, reset_in = self.hit(ip)
        reset_seconds = max(1, int(reset_in + 0.999))
        headers = {
            "RateLimit-Limit": str(self.max_requests),
            "RateLimit-Remaining": str(max(0, self.max_requests - count)),
            "RateLimit-Reset": str(reset_seconds),
        }

        if count > self.max_requests:
            logger.warning("rate_limit.exceeded", path=request.url.path, count=count)
            return JSONResponse(
                status_code=429,
                content={"success": False, "message": RATE_LIMIT_MESSAGE},
                headers={**headers, "Retry-After": str(reset_seconds)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
