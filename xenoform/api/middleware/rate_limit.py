"""Rate limiting middleware for Xenoform API

Provides per-IP request limits in front of the generation endpoints.

Security features:
- IP spoofing protection (only trusts X-Forwarded-For behind Cloud Run)
- Bounded memory via TTLCache buckets
"""

from __future__ import annotations

import ipaddress
import secrets
import time
from collections.abc import Callable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from xenoform.config import RATE_LIMIT_MAX_IPS, RATE_LIMIT_RPH, RATE_LIMIT_RPM, is_development
from xenoform.observability.telemetry import log_event

# The page polls itself while loading; health probes hit these too
EXEMPT_PATHS = frozenset({"/", "/health", "/health/db"})


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware.

    Limits requests per IP address (60 req/min, 1000 req/hour by default).
    Buckets live in process memory, so limits are per instance.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = RATE_LIMIT_RPM,
        requests_per_hour: int = RATE_LIMIT_RPH,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour

        # Request tracking: {ip: [timestamp, ...]}
        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=120
        )
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=7200
        )

        # Cloud Run sets this header - only trust X-Forwarded-For when present
        self._trusted_proxy_header = "X-Cloud-Trace-Context"

    def _is_valid_ip(self, ip_str: str) -> bool:
        try:
            ipaddress.ip_address(ip_str)
            return True
        except ValueError:
            return False

    def _forwarded_ip(self, request: Request) -> str | None:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
            if self._is_valid_ip(ip):
                return ip
        return None

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP with spoofing protection.

        X-Forwarded-For is trusted only behind Cloud Run (X-Cloud-Trace-Context
        present) or in development. Otherwise the socket address is used.
        """
        if self._trusted_proxy_header in request.headers or is_development():
            ip = self._forwarded_ip(request)
            if ip:
                return ip

        return request.client.host if request.client else "unknown"

    def _clean_old_requests(self, bucket: list[float], max_age_seconds: int) -> list[float]:
        """Remove requests older than max_age_seconds"""
        now = time.time()
        return [ts for ts in bucket if now - ts < max_age_seconds]

    def _cleanup_old_buckets(self) -> None:
        """Drop IPs idle for two hours."""
        now = time.time()
        max_idle_time = 7200

        idle = [
            ip
            for ip in list(self.minute_buckets.keys())
            if not self.minute_buckets.get(ip) or now - max(self.minute_buckets[ip]) > max_idle_time
        ]
        for ip in idle:
            self.minute_buckets.pop(ip, None)
            self.hour_buckets.pop(ip, None)

    def _reject(self, client_ip: str, limit: str, count: int, retry_after: int) -> JSONResponse:
        log_event("api.rate_limit.request_exceeded", ip=client_ip, limit=limit, count=count)
        allowed = self.requests_per_minute if limit == "minute" else self.requests_per_hour
        return JSONResponse(
            status_code=429,
            content={
                "detail": f"Rate limit exceeded. Maximum {allowed} requests per {limit}.",
                "retry_after": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Check rate limits before processing request."""
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        # 1% of requests sweep idle buckets
        if secrets.randbelow(100) == 0:
            self._cleanup_old_buckets()

        client_ip = self._get_client_ip(request)
        now = time.time()

        minute_bucket = self._clean_old_requests(self.minute_buckets.get(client_ip, []), 60)
        hour_bucket = self._clean_old_requests(self.hour_buckets.get(client_ip, []), 3600)

        minute_requests = len(minute_bucket)
        if minute_requests >= self.requests_per_minute:
            self.minute_buckets[client_ip] = minute_bucket
            return self._reject(client_ip, "minute", minute_requests, 60)

        hour_requests = len(hour_bucket)
        if hour_requests >= self.requests_per_hour:
            self.hour_buckets[client_ip] = hour_bucket
            return self._reject(client_ip, "hour", hour_requests, 3600)

        minute_bucket.append(now)
        hour_bucket.append(now)
        self.minute_buckets[client_ip] = minute_bucket
        self.hour_buckets[client_ip] = hour_bucket

        response = await call_next(request)

        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(
            self.requests_per_minute - minute_requests - 1
        )
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(
            self.requests_per_hour - hour_requests - 1
        )

        return response
