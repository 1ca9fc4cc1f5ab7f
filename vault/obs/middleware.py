"""ASGI middleware for lightweight observability."""

from typing import Callable, Any
import re
import time
import uuid

from vault.obs.context import request_id_var, client_ip_var
from vault.obs.logger import log_event
from vault.obs.metrics import record_timing, inc_counter

_RECORD_PATH_RE = re.compile(r"^/api/records/[^/]+$")


def route_label(path: str) -> str:
    """Collapse record ids so metric labels stay bounded."""
    if _RECORD_PATH_RE.match(path):
        return "/api/records/{id}"
    return path


class ObservabilityMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope: dict, receive: Callable, send: Callable[[dict], Any]):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        request_id_var.set(str(uuid.uuid4()))
        client = scope.get("client") or ("unknown", None)
        client_ip_var.set(client[0])
        method = scope.get("method", "")
        route = route_label(scope.get("path", ""))
        start = time.monotonic()
        status_code = 500

        async def send_wrapper(message: dict):
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 200))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000.0
            record_timing("request_latency_ms", elapsed_ms, {"route": route})
            inc_counter("requests_total", {"route": route, "method": method, "status": str(status_code)})
            log_event(
                "request",
                method=method,
                route=route,
                status=status_code,
                ms_total=round(elapsed_ms, 2),
            )
