"""
Claims Desk - Rate Limiting

In-memory sliding window limiter per client IP, applied to the endpoints that
accept a signature token so tokens cannot be enumerated cheaply.
"""

import time
from typing import Optional

from starlette.types import ASGIApp, Receive, Scope, Send
from starlette.requests import Request
from starlette.responses import JSONResponse


class RateLimitStore:
    """
    Sliding window hit counter keyed by client and rule.

    Each hit is stored as the moment it stops counting, so keys with
    different windows can be swept together. Keys with no live hits are
    dropped.
    """

    def __init__(self, sweep_interval: float = 60.0):
        self._hits: dict[str, list[float]] = {}
        self._sweep_interval = sweep_interval
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._hits)

    def is_rate_limited(self, key: str, max_requests: int, window_seconds: int, now: Optional[float] = None) -> bool:
        """Record a hit for key unless it is already over its limit."""
        now = time.monotonic() if now is None else now
        if now >= self._next_sweep:
            self.sweep(now)

        live = [expires for expires in self._hits.get(key, ()) if expires > now]
        limited = len(live) >= max_requests
        if not limited:
            live.append(now + window_seconds)

        if live:
            self._hits[key] = live
        else:
            self._hits.pop(key, None)
        return limited

    def sweep(self, now: Optional[float] = None):
        """Drop every key whose hits have all aged out."""
        now = time.monotonic() if now is None else now
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= now]:
            del self._hits[key]
        self._next_sweep = now + self._sweep_interval

    def reset(self):
        self._hits.clear()
        self._next_sweep = 0.0


rate_limit_store = RateLimitStore()

# {path prefix: (max_requests, window_seconds)}
RATE_LIMIT_RULES: dict[str, tuple[int, int]] = {
    "/sign": (30, 60),
    "/api/signature-portal": (30, 60),
    "/webhooks/jotform": (120, 60),
}


def match_rule(path: str):
    """Find the rate limit rule for a path, if any."""
    for rule_path, limits in RATE_LIMIT_RULES.items():
        if path == rule_path or path.startswith(rule_path + "/"):
            return rule_path, limits
    return None


class RateLimitMiddleware:
    """
    Rate limiting middleware.

    Requests are counted per client IP and rule, so every portal link a
    single client tries draws on the same budget.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        match = match_rule(request.url.path)
        if match is None:
            await self.app(scope, receive, send)
            return

        rule_path, (max_requests, window_seconds) = match
        client_ip = request.client.host if request.client else "unknown"
        key = f"{client_ip}:{rule_path}"

        if rate_limit_store.is_rate_limited(key, max_requests, window_seconds):
            response = JSONResponse(
                status_code=429,
                content={"detail": "Too many requests. Please try again later."},
                headers={"Retry-After": str(window_seconds)},
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)
