from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from pydantic import ValidationError
import redis

from vault.config import settings
from vault.auth.gate import AuthGate, Authenticated
from vault.errors import MalformedInput, MissingIdentifier, VaultError
from vault.infrastructure.resilience import HealthChecker, LoginThrottleMiddleware
from vault.obs.logger import log_event
from vault.obs.metrics import get_metrics_snapshot
from vault.obs.middleware import ObservabilityMiddleware
from vault.records.query import QueryEngine
from vault.records.store import RecordStore
from vault.session.manager import SessionManager
from vault.storage.backend import KeyValueBackend, RedisBackend, create_backend
from vault.types import QueryFilter, RecordInput, RecordPatch
from vault.utils.dates import today_iso

load_dotenv()

SERVICE_NAME = "credential-vault"
VERSION = "1.0.0"

_UNSET: Any = object()


@dataclass
class Services:
    backend: KeyValueBackend
    sessions: SessionManager
    gate: AuthGate
    store: RecordStore
    query: QueryEngine


def build_services(backend: KeyValueBackend, admin_password: Optional[str]) -> Services:
    sessions = SessionManager(backend, ttl_seconds=settings.SESSION_TTL_SECONDS)
    store = RecordStore(backend)
    return Services(
        backend=backend,
        sessions=sessions,
        gate=AuthGate(sessions, admin_password=admin_password),
        store=store,
        query=QueryEngine(store, soon_days=settings.SOON_THRESHOLD_DAYS),
    )


# ---------- helpers ----------

def json_response(data: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(data, status_code=status_code, headers={"cache-control": "no-store"})


async def read_body_json(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise MalformedInput()
    if not isinstance(body, dict):
        raise MalformedInput()
    return body


def get_services(request: Request) -> Services:
    return request.app.state.services


def require_session(request: Request, services: Services = Depends(get_services)) -> Authenticated:
    return services.gate.require(request.cookies.get(settings.SESSION_COOKIE))


def _set_session_cookie(response: JSONResponse, token: str, max_age: int) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE,
        token,
        max_age=max_age,
        path="/",
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite="strict",
    )


# ---------- app ----------

@asynccontextmanager
async def lifespan(api: FastAPI):
    log_event("startup", service=SERVICE_NAME, version=VERSION, env=settings.APP_ENV)
    yield
    log_event("shutdown", service=SERVICE_NAME)


def create_app(backend: KeyValueBackend = None, admin_password: Optional[str] = _UNSET) -> FastAPI:
    api = FastAPI(title="Credential Vault", version=VERSION, lifespan=lifespan)
    if admin_password is _UNSET:
        admin_password = settings.ADMIN_PASSWORD
    api.state.services = build_services(backend or create_backend(), admin_password)

    @api.exception_handler(VaultError)
    async def vault_error_handler(request: Request, exc: VaultError):
        return json_response(exc.to_payload(), status_code=exc.status_code)

    @api.exception_handler(redis.RedisError)
    async def backend_error_handler(request: Request, exc: redis.RedisError):
        log_event("request_error", level="ERROR", error=type(exc).__name__, path=request.url.path)
        return json_response({"ok": False, "error": "BACKEND"}, status_code=503)

    @api.get("/")
    def root(request: Request, services: Services = Depends(get_services)):
        token = request.cookies.get(settings.SESSION_COOKIE)
        return json_response({
            "service": SERVICE_NAME,
            "version": VERSION,
            "today": today_iso(),
            "authed": services.sessions.validate(token),
        })

    @api.get("/health")
    async def health():
        return {"status": "healthy", "service": SERVICE_NAME}

    @api.get("/health/detailed")
    async def detailed_health(services: Services = Depends(get_services)):
        health_checker = HealthChecker()
        health_checker.register_check("backend", services.backend.ping)
        results = await health_checker.run_checks()
        status_code = 200 if results["status"] == "healthy" else 503
        return JSONResponse(results, status_code=status_code)

    @api.get("/metrics")
    async def metrics():
        return get_metrics_snapshot()

    # ---------- auth ----------

    @api.post("/api/login")
    async def login(request: Request, services: Services = Depends(get_services)):
        try:
            body = await read_body_json(request)
        except MalformedInput:
            body = {}
        token = await run_in_threadpool(services.gate.login, body.get("password") or "")
        response = json_response({"ok": True})
        _set_session_cookie(response, token, max_age=services.sessions.ttl_seconds)
        return response

    @api.post("/api/logout")
    def logout(request: Request, services: Services = Depends(get_services)):
        services.gate.logout(request.cookies.get(settings.SESSION_COOKIE))
        response = json_response({"ok": True})
        _set_session_cookie(response, "", max_age=0)
        return response

    # ---------- records ----------

    @api.get("/api/records")
    def list_records(
        q: str = "",
        status: str = "all",
        sort: str = "due",
        services: Services = Depends(get_services),
        _: Authenticated = Depends(require_session),
    ):
        result = services.query.list(QueryFilter(q=q, status=status, sort=sort))
        return json_response(result.to_wire())

    @api.post("/api/records")
    async def create_record(
        request: Request,
        services: Services = Depends(get_services),
        _: Authenticated = Depends(require_session),
    ):
        body = await read_body_json(request)
        try:
            data = RecordInput.model_validate(body)
        except ValidationError:
            raise MalformedInput()
        record = await run_in_threadpool(services.store.create, data)
        return json_response({"ok": True, "record": record.to_wire()})

    @api.put("/api/records/{record_id}")
    async def update_record(
        record_id: str,
        request: Request,
        services: Services = Depends(get_services),
        _: Authenticated = Depends(require_session),
    ):
        body = await read_body_json(request)
        try:
            patch = RecordPatch.model_validate(body)
        except ValidationError:
            raise MalformedInput()
        record = await run_in_threadpool(services.store.update, record_id, patch)
        return json_response({"ok": True, "record": record.to_wire()})

    @api.delete("/api/records/{record_id}")
    def delete_record(
        record_id: str,
        services: Services = Depends(get_services),
        _: Authenticated = Depends(require_session),
    ):
        services.store.delete(record_id)
        return json_response({"ok": True})

    @api.api_route("/api/records/", methods=["PUT", "DELETE"])
    async def record_without_id(_: Authenticated = Depends(require_session)):
        raise MissingIdentifier()

    return api


def wrap(api: FastAPI):
    """Apply the ASGI middleware stack."""
    backend = api.state.services.backend
    redis_client = backend.client if isinstance(backend, RedisBackend) else None
    wrapped = ObservabilityMiddleware(api)
    return LoginThrottleMiddleware(
        wrapped,
        redis_client,
        max_requests=settings.LOGIN_RATE_LIMIT,
        window_seconds=settings.LOGIN_RATE_WINDOW_SECONDS,
    )


api = create_app()
app = wrap(api)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.APP_ENV == "dev",
        log_level="info"
    )
