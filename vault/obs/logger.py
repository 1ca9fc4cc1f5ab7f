"""Structured JSON logging to stdout.

One compact JSON object per line. Secret-bearing fields are masked before
they are written.
"""

from typing import Any, Dict
from datetime import datetime, timezone
import json

from vault.obs.context import request_id_var, client_ip_var

SECRET_FIELDS = ("password", "token", "session", "secret")


def _redact_secret(value: Any) -> Any:
    s = str(value) if value is not None else ""
    if not s:
        return s
    if len(s) < 8:
        return "***"
    return f"***{s[-4:]}"


def _is_secret(key: str) -> bool:
    k = key.lower()
    return any(marker in k for marker in SECRET_FIELDS)


def log_event(event: str, **fields: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    payload: Dict[str, Any] = {
        "ts": now,
        "level": fields.pop("level", "INFO"),
        "event": event,
        "request_id": request_id_var.get(),
    }
    client_ip = client_ip_var.get()
    if client_ip:
        payload["client_ip"] = client_ip

    for k, v in fields.items():
        payload[k] = _redact_secret(v) if _is_secret(k) else v

    try:
        print(json.dumps(payload, separators=(",", ":"), default=str))
    except Exception:
        # As a last resort, avoid crashing the app due to logging
        pass
