import pytest

from vault.auth.gate import AuthGate, Authenticated, Unauthenticated
from vault.errors import InvalidCredential, MisconfiguredServer, Unauthorized
from vault.session.manager import SessionManager
from vault.storage.backend import MemoryBackend

THIRTY_DAYS = 30 * 24 * 3600


class Ticker:
    def __init__(self):
        self.t = 1_000_000.0

    def __call__(self):
        return self.t


@pytest.fixture
def ticker():
    return Ticker()


@pytest.fixture
def sessions(ticker):
    return SessionManager(MemoryBackend(clock=ticker), ttl_seconds=THIRTY_DAYS)


class TestSessionManager:
    def test_issue_returns_high_entropy_token(self, sessions):
        tokens = {sessions.issue() for _ in range(50)}
        assert len(tokens) == 50
        assert all(len(t) == 48 for t in tokens)

    def test_validate_after_issue(self, sessions):
        token = sessions.issue()
        assert sessions.validate(token) is True

    def test_unknown_and_empty_tokens_are_invalid(self, sessions):
        assert sessions.validate("never-issued") is False
        assert sessions.validate("") is False
        assert sessions.validate(None) is False

    def test_revoke_is_idempotent(self, sessions):
        token = sessions.issue()
        sessions.revoke(token)
        assert sessions.validate(token) is False
        sessions.revoke(token)
        sessions.revoke(None)

    def test_session_expires_after_ttl_regardless_of_use(self, sessions, ticker):
        token = sessions.issue()
        ticker.t += THIRTY_DAYS - 1
        assert sessions.validate(token) is True
        ticker.t += 1
        assert sessions.validate(token) is False

    def test_marker_written_with_ttl(self):
        from unittest.mock import Mock
        backend = Mock()
        token = SessionManager(backend, ttl_seconds=60).issue()
        backend.put.assert_called_once_with(f"sess:{token}", "1", ttl_seconds=60)


class TestAuthGate:
    def test_login_issues_valid_session(self, sessions):
        gate = AuthGate(sessions, admin_password="s3cret")
        token = gate.login("s3cret")
        assert gate.authenticate(token) == Authenticated(token=token)

    def test_wrong_password(self, sessions):
        gate = AuthGate(sessions, admin_password="s3cret")
        with pytest.raises(InvalidCredential):
            gate.login("S3CRET")
        with pytest.raises(InvalidCredential):
            gate.login("")
        with pytest.raises(InvalidCredential):
            gate.login(None)

    @pytest.mark.parametrize("configured", [None, ""])
    def test_missing_secret_fails_closed(self, sessions, configured):
        gate = AuthGate(sessions, admin_password=configured)
        for attempt in ("", None, "anything"):
            with pytest.raises(MisconfiguredServer):
                gate.login(attempt)

    def test_authenticate_unknown_token(self, sessions):
        gate = AuthGate(sessions, admin_password="x")
        assert isinstance(gate.authenticate("bogus"), Unauthenticated)
        assert isinstance(gate.authenticate(None), Unauthenticated)

    def test_require_raises_unauthorized(self, sessions):
        gate = AuthGate(sessions, admin_password="x")
        with pytest.raises(Unauthorized):
            gate.require("bogus")

    def test_logout_revokes(self, sessions):
        gate = AuthGate(sessions, admin_password="pw")
        token = gate.login("pw")
        gate.logout(token)
        assert isinstance(gate.authenticate(token), Unauthenticated)
        gate.logout(token)
