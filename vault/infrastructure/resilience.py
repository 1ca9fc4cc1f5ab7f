import asyncio
import json
import time
from typing import Dict, Callable
from datetime import datetime
from collections import defaultdict, deque
import redis

from vault.obs.logger import log_event


class RateLimiter:
    def __init__(self, redis_client: redis.Redis = None):
        self.redis_client = redis_client
        self.local_cache: Dict[str, deque] = defaultdict(deque)

    def check_rate_limit(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Dict]:
        if self.redis_client:
            return self._check_redis_rate_limit(key, max_requests, window_seconds)
        return self._check_local_rate_limit(key, max_requests, window_seconds)

    def _check_redis_rate_limit(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Dict]:
        redis_key = f"rate_limit:{key}"
        now = time.time()
        pipeline = self.redis_client.pipeline()

        # Sliding window in a sorted set scored by arrival time
        pipeline.zremrangebyscore(redis_key, 0, now - window_seconds)
        pipeline.zadd(redis_key, {str(now): now})
        pipeline.zcard(redis_key)
        pipeline.expire(redis_key, window_seconds + 1)

        results = pipeline.execute()
        request_count = results[2]

        allowed = request_count <= max_requests
        return allowed, {
            "allowed": allowed,
            "current": request_count,
            "limit": max_requests,
            "window_seconds": window_seconds,
            "retry_after": window_seconds if not allowed else None
        }

    def _check_local_rate_limit(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, Dict]:
        now = time.time()
        request_times = self.local_cache[key]

        cutoff = now - window_seconds
        while request_times and request_times[0] < cutoff:
            request_times.popleft()
        if not request_times:
            self._prune(cutoff)
            request_times = self.local_cache[key]

        if len(request_times) < max_requests:
            request_times.append(now)
            return True, {
                "allowed": True,
                "current": len(request_times),
                "limit": max_requests,
                "window_seconds": window_seconds
            }

        return False, {
            "allowed": False,
            "current": len(request_times),
            "limit": max_requests,
            "window_seconds": window_seconds,
            "retry_after": window_seconds
        }

    def _prune(self, cutoff: float):
        # drop clients with no request inside the window
        stale = [k for k, times in self.local_cache.items() if not times or times[-1] < cutoff]
        for k in stale:
            del self.local_cache[k]


class HealthChecker:
    def __init__(self):
        self.checks = {}

    def register_check(self, name: str, check_func: Callable):
        self.checks[name] = check_func

    async def run_checks(self) -> Dict:
        names = list(self.checks)
        outcomes = await asyncio.gather(*(self._run_single_check(self.checks[n]) for n in names))
        results = dict(zip(names, outcomes))

        all_healthy = all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": results,
            "timestamp": datetime.now().isoformat()
        }

    async def _run_single_check(self, check_func: Callable) -> Dict:
        try:
            start = time.time()
            if asyncio.iscoroutinefunction(check_func):
                result = await check_func()
            else:
                result = check_func()

            duration = time.time() - start
            return {
                "status": "healthy" if result else "unhealthy",
                "duration_ms": int(duration * 1000),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }


class LoginThrottleMiddleware:
    """Rate-limits POST /api/login per client address."""

    def __init__(self, app, redis_client: redis.Redis = None, max_requests: int = 10, window_seconds: int = 60):
        self.app = app
        self.rate_limiter = RateLimiter(redis_client)
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"] == "/api/login" and scope.get("method") == "POST":
            client_ip = (scope.get("client") or ("unknown", None))[0]
            allowed, limit_info = self.rate_limiter.check_rate_limit(
                f"login:{client_ip}",
                max_requests=self.max_requests,
                window_seconds=self.window_seconds
            )

            if not allowed:
                log_event("login_throttled", level="WARNING", current=limit_info["current"])
                await self._send_rate_limit_response(send, limit_info)
                return

        await self.app(scope, receive, send)

    async def _send_rate_limit_response(self, send, limit_info: Dict):
        await send({
            "type": "http.response.start",
            "status": 429,
            "headers": [
                [b"content-type", b"application/json"],
                [b"cache-control", b"no-store"],
                [b"retry-after", str(limit_info["retry_after"]).encode()],
            ],
        })
        await send({
            "type": "http.response.body",
            "body": json.dumps({"ok": False, "error": "RATE_LIMITED"}).encode(),
        })
