"""Error taxonomy surfaced to callers as a machine-readable kind.

Each error carries the wire ``kind`` and the HTTP status the transport maps it
to. Messages stay generic: callers never learn why authentication failed.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base error for all vault failures that are reported to the caller."""

    kind = "ERROR"
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)

    def to_payload(self) -> dict:
        return {"ok": False, "error": self.kind}


# -- Auth --


class MisconfiguredServer(VaultError):
    """No admin secret configured; fixed by the operator, not the client."""

    kind = "CONFIG"
    status_code = 500


class InvalidCredential(VaultError):
    """Wrong login password."""

    kind = "INVALID"
    status_code = 401


class Unauthorized(VaultError):
    """Missing, invalid or expired session on a gated call."""

    kind = "UNAUTHORIZED"
    status_code = 401


# -- Input --


class MalformedInput(VaultError):
    """Request body absent or unparsable."""

    kind = "BAD"
    status_code = 400


class InvalidDate(VaultError):
    """A date field is not a YYYY-MM-DD calendar date."""

    kind = "DATE"
    status_code = 400

    def __init__(self, field: str = "") -> None:
        self.field = field
        super().__init__(f"Invalid date for {field}" if field else "Invalid date")


class InvalidRange(VaultError):
    """endDate falls before startDate on a non-unlimited record."""

    kind = "RANGE"
    status_code = 400


class MissingIdentifier(VaultError):
    """Mutation or delete call without a target id."""

    kind = "NOID"
    status_code = 400


class NotFound(VaultError):
    """Referenced record id does not exist."""

    kind = "NF"
    status_code = 404

    def __init__(self, record_id: str = "") -> None:
        self.record_id = record_id
        super().__init__(f"Record {record_id} not found" if record_id else "Not found")
