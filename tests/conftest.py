"""
Pytest configuration and shared fixtures.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence

import jwt
import pytest

from app import create_app
from config import AuditConfig, AuthConfig, StorageConfig
from night_audit import AuditSnapshot, SnapshotLoader
from storage import DocumentReadError, InMemoryRepository

TZ_OFFSET = 7
# 12:00 on 2025-03-10 at UTC+7
RUN_AT = datetime(2025, 3, 10, 5, 0, tzinfo=timezone.utc)
BUSINESS_DAY = datetime(2025, 3, 10)
BUSINESS_DAY_KEY = "2025-03-10"
JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"


def day_offset(days: int, base: datetime = BUSINESS_DAY) -> str:
    """ISO date string `days` away from the business day."""
    return (base + timedelta(days=days)).strftime("%Y-%m-%d")


class HotelBuilder:
    """Seed an in-memory store with hotel documents."""

    def __init__(self, repository: Optional[InMemoryRepository] = None):
        self.repo = repository or InMemoryRepository()
        self._counter = 0

    def _next_key(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def room(self, number: Any, status: str = "Available", room_type: Optional[str] = "Deluxe") -> str:
        key = str(number)
        doc = {"roomNumber": number, "status": status}
        if room_type is not None:
            doc["roomType"] = room_type
        self.repo.seed("rooms", {key: doc})
        return key

    def reservation(
        self,
        key: str,
        status: str = "checked-in",
        check_in: Any = None,
        check_out: Any = None,
        rooms: Sequence[Any] = ("101",),
        channel: Optional[str] = None,
        **extra
    ) -> str:
        doc: Dict[str, Any] = {"status": status, "roomNumbers": list(rooms)}
        if check_in is not None:
            doc["checkInDate"] = check_in
        if check_out is not None:
            doc["checkOutDate"] = check_out
        if channel is not None:
            doc["channel"] = channel
        doc.update(extra)
        self.repo.seed("reservations", {key: doc})
        return key

    def stay(self, key: str, room: Any, reservation_id: Any = None, status: str = "open") -> str:
        self.repo.seed("stays", {key: {"roomNumber": room, "reservationId": reservation_id, "status": status}})
        return key

    def posting(self, reservation_id: str, amount: float, tax: float = 0.0, service: float = 0.0,
                status: Optional[str] = None) -> str:
        key = self._next_key("post")
        doc = {"reservationId": reservation_id, "amount": amount, "tax": tax, "service": service}
        if status is not None:
            doc["status"] = status
        self.repo.seed("postings", {key: doc})
        return key

    def payment(self, reservation_id: str, amount: float) -> str:
        key = self._next_key("pay")
        self.repo.seed("payments", {key: {"reservationId": reservation_id, "amount": amount}})
        return key

    def noticed_issue(self, issue_key: str) -> str:
        self.repo.seed("nightAuditIssues", {issue_key: {"noticed": True}})
        return issue_key

    def snapshot(self, audit_config: Optional[AuditConfig] = None, tz_offset: int = TZ_OFFSET) -> AuditSnapshot:
        audit_config = audit_config or AuditConfig()
        loader = SnapshotLoader(self.repo, audit_config.collections, audit_config.reconciliation, tz_offset)
        return loader.load()


class FailingReadRepository(InMemoryRepository):
    """In-memory store whose reads of one collection always fail."""

    def __init__(self, failing_collection: str, **kwargs):
        super().__init__(**kwargs)
        self.failing_collection = failing_collection

    def list_collection(self, name, predicate=None):
        if name == self.failing_collection:
            raise DocumentReadError(f"Failed to query collection '{name}': HTTP 503")
        return super().list_collection(name, predicate)


@pytest.fixture
def hotel():
    """Empty hotel backed by an in-memory store."""
    return HotelBuilder()


@pytest.fixture
def audit_config():
    """Configuration with memory storage and HS256 token verification."""
    return AuditConfig(
        storage=StorageConfig(backend="memory"),
        auth=AuthConfig(
            require_auth=True,
            jwt_key=JWT_SECRET,
            jwt_algorithms=["HS256"],
            jwt_audience=None,
            enable_activity_logging=True,
        ),
    )


@pytest.fixture
def app(hotel, audit_config):
    """Flask application wired to the hotel fixture's store."""
    return create_app({
        "TESTING": True,
        "AUDIT_CONFIG": audit_config,
        "REPOSITORY": hotel.repo,
    })


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


def make_token(permissions=("canRunNightAudit",), **claims) -> str:
    """Signed bearer token carrying a permissions claim."""
    payload = {
        "sub": "user-1",
        "name": "Night Auditor",
        "email": "auditor@hotel.test",
        "permissions": list(permissions),
    }
    payload.update(claims)
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


@pytest.fixture
def auth_headers():
    """Authorization header for a user allowed to run the night audit."""
    return {"Authorization": f"Bearer {make_token()}"}
