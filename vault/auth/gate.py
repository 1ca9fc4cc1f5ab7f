"""Authentication gate in front of every record read or mutation."""

from dataclasses import dataclass
from typing import Optional, Union
import hmac

from vault.config import settings
from vault.errors import InvalidCredential, MisconfiguredServer, Unauthorized
from vault.obs.logger import log_event
from vault.session.manager import SessionManager


@dataclass(frozen=True)
class Authenticated:
    token: str


@dataclass(frozen=True)
class Unauthenticated:
    pass


AuthResult = Union[Authenticated, Unauthenticated]


class AuthGate:
    def __init__(self, sessions: SessionManager, admin_password: Optional[str] = None):
        self.sessions = sessions
        self.admin_password = admin_password

    def authenticate(self, token: Optional[str]) -> AuthResult:
        if token and self.sessions.validate(token):
            return Authenticated(token=token)
        return Unauthenticated()

    def require(self, token: Optional[str]) -> Authenticated:
        """Like authenticate, but raises Unauthorized instead of returning the failure."""
        result = self.authenticate(token)
        if isinstance(result, Unauthenticated):
            raise Unauthorized()
        return result

    def login(self, password: Optional[str]) -> str:
        """Exchange the admin password for a session token."""
        secret = self.admin_password
        if not secret:
            log_event("login_misconfigured", level="ERROR")
            raise MisconfiguredServer()

        supplied = password if isinstance(password, str) else ""
        if not hmac.compare_digest(supplied.encode("utf-8"), secret.encode("utf-8")):
            log_event("login_failed", level="WARNING")
            raise InvalidCredential()

        token = self.sessions.issue()
        log_event("login_ok", token=token)
        return token

    def logout(self, token: Optional[str]) -> None:
        self.sessions.revoke(token)
        log_event("logout", token=token)


def create_gate(sessions: SessionManager) -> AuthGate:
    return AuthGate(sessions, admin_password=settings.ADMIN_PASSWORD)
