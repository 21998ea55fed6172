"""HTTP middleware: request ids and access logging, and per-client rate limiting."""
import logging
import math
import time
from typing import Callable, Optional
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from .errors import RateLimitError, app_error_handler, unhandled_exception_handler
from .logging_config import LOGGER_NAME, request_id_ctx_var
from .ratelimit import FixedWindowLimiter, RateLimitConfig, build_rate_limit_config

logger = logging.getLogger(LOGGER_NAME)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request id to each request and log its completion."""

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # The 500 body is rendered here while the request id is still bound.
                response = await unhandled_exception_handler(request, exc)
            duration_ms = (time.perf_counter() - start) * 1000
            response.headers[self.header_name] = rid
            logger.info("%s %s %s %.1fms", request.method, request.url.path, response.status_code, duration_ms)
            return response
        finally:
            request_id_ctx_var.reset(token)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window limit on requests per client address."""

    def __init__(
        self,
        app,
        *,
        config: Optional[RateLimitConfig] = None,
        time_fn: Optional[Callable[[], float]] = None,
    ):
        super().__init__(app)
        self.config = config or build_rate_limit_config()
        self.limiter = FixedWindowLimiter(self.config, time_fn=time_fn or time.monotonic)

    def _client_key(self, request: Request) -> str:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    async def dispatch(self, request: Request, call_next):
        if not self.config.enabled:
            return await call_next(request)

        decision = self.limiter.hit(self._client_key(request))
        if decision.allowed:
            response = await call_next(request)
        else:
            response = await app_error_handler(
                request,
                RateLimitError("Too many requests from this IP, please try again later."),
            )
            response.headers["Retry-After"] = str(max(1, math.ceil(decision.reset_after)))

        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
