"""
Fixed-window request limiter.

- In-memory, keyed by client address; each key gets ``max_requests`` per
  window and the counter starts over when the window elapses.
- Settings come from RATE_LIMIT_ENABLED / RATE_LIMIT_WINDOW_MS /
  RATE_LIMIT_MAX_REQUESTS (see ``config``).
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from . import config


@dataclass
class RateLimitConfig:
    enabled: bool = True
    window_seconds: float = 15 * 60
    max_requests: int = 100


@dataclass
class WindowState:
    started_at: float
    count: int = 0


@dataclass
class Decision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float


class FixedWindowLimiter:
    # 期限切れのウィンドウはこの件数を超えたときにまとめて捨てます
    prune_threshold = 10_000

    def __init__(self, config: RateLimitConfig, time_fn: Callable[[], float] = time.monotonic):
        self.config = config
        self.time_fn = time_fn
        self.windows: Dict[str, WindowState] = {}

    def _prune(self, now: float) -> None:
        expired = [key for key, state in self.windows.items() if now - state.started_at >= self.config.window_seconds]
        for key in expired:
            del self.windows[key]

    def hit(self, key: str) -> Decision:
        now = self.time_fn()
        state = self.windows.get(key)
        if state is None or now - state.started_at >= self.config.window_seconds:
            if len(self.windows) >= self.prune_threshold:
                self._prune(now)
            state = self.windows[key] = WindowState(started_at=now)

        state.count += 1
        limit = max(1, self.config.max_requests)
        return Decision(
            allowed=state.count <= limit,
            limit=limit,
            remaining=max(0, limit - state.count),
            reset_after=max(0.0, state.started_at + self.config.window_seconds - now),
        )


def build_rate_limit_config(
    enabled: Optional[bool] = None,
    window_ms: Optional[int] = None,
    max_requests: Optional[int] = None,
) -> RateLimitConfig:
    """Build limiter settings, falling back to the environment-driven defaults."""
    window_ms = window_ms if window_ms is not None else config.RATE_LIMIT_WINDOW_MS
    max_requests = max_requests if max_requests is not None else config.RATE_LIMIT_MAX_REQUESTS
    return RateLimitConfig(
        enabled=config.RATE_LIMIT_ENABLED if enabled is None else enabled,
        window_seconds=max(1, window_ms) / 1000.0,
        max_requests=max(1, max_requests),
    )
