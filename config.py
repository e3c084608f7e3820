"""
Centralized configuration for the Night Audit service.
All collection names, tolerances, and detection rules are defined here.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from pathlib import Path
import os


@dataclass
class BusinessDayConfig:
    """Business-day clock settings."""
    # Hotel wall clock is UTC + tz_offset_hours (no DST rules applied)
    tz_offset_hours: int = field(default_factory=lambda: int(os.getenv('NIGHT_AUDIT_TZ_OFFSET', '7')))
    cutover_hour: int = 4


@dataclass
class ReconciliationConfig:
    """Configuration for reconciliation tolerances and rules."""
    mismatch_tolerance: float = 0.5
    reservation_statuses: List[str] = field(default_factory=lambda: [
        "booked", "checked-in", "checked-out", "cancelled"
    ])
    excluded_posting_statuses: List[str] = field(default_factory=lambda: ["void"])
    default_channel: str = "direct"
    unknown_room_type: str = "unknown"
    status_matched: str = "MATCHED"
    status_mismatch: str = "MISMATCH"
    status_empty: str = "EMPTY"


@dataclass
class CollectionConfig:
    """Document collection names in the hotel store."""
    rooms: str = "rooms"
    reservations: str = "reservations"
    stays: str = "stays"
    postings: str = "postings"
    payments: str = "payments"
    issues: str = "nightAuditIssues"
    logs: str = "nightAuditLogs"
    snapshots: str = "nightAuditSnapshots"
    activity: str = "auditLogs"


@dataclass
class StorageConfig:
    """Configuration for the document store backend."""
    backend: str = field(default_factory=lambda: os.getenv('STORAGE_BACKEND', 'local').lower())
    base_dir: Path = field(default_factory=lambda: Path(os.getenv('STORAGE_BASE_DIR', 'instance/documents')))

    # Firestore REST settings (loaded from environment variables)
    firestore_project_id: Optional[str] = field(default_factory=lambda: os.getenv('FIRESTORE_PROJECT_ID'))
    firestore_database: str = field(default_factory=lambda: os.getenv('FIRESTORE_DATABASE', '(default)'))
    firestore_access_token: Optional[str] = field(default_factory=lambda: os.getenv('FIRESTORE_ACCESS_TOKEN'))
    request_timeout: int = 30

    # Concurrent collection reads during snapshot loading
    load_workers: int = 6

    def is_firestore_configured(self) -> bool:
        """Check if Firestore access is configured."""
        return bool(self.firestore_project_id and self.firestore_access_token)


@dataclass
class AuthConfig:
    """Bearer-token authentication and permission claim settings."""
    require_auth: bool = field(default_factory=lambda: os.getenv('REQUIRE_AUTH', 'true').lower() == 'true')

    # Key used to verify bearer tokens (shared secret for HS*, PEM public key for RS*)
    jwt_key: Optional[str] = field(default_factory=lambda: os.getenv('AUTH_JWT_KEY'))
    jwt_algorithms: List[str] = field(default_factory=lambda: [
        alg.strip() for alg in os.getenv('AUTH_JWT_ALGORITHMS', 'HS256').split(',') if alg.strip()
    ])
    jwt_audience: Optional[str] = field(default_factory=lambda: os.getenv('AUTH_JWT_AUDIENCE'))

    # Permission claims
    permissions_claim: str = "permissions"
    run_permission: str = "canRunNightAudit"
    wildcard_permission: str = "*"

    # Operator action trail
    enable_activity_logging: bool = field(default_factory=lambda: os.getenv('ENABLE_ACTIVITY_LOGGING', 'true').lower() == 'true')

    def is_configured(self) -> bool:
        """Check if token verification is configured."""
        return bool(self.jwt_key and self.jwt_algorithms)


@dataclass
class AuditConfig:
    """Main audit configuration container."""
    business_day: BusinessDayConfig = field(default_factory=BusinessDayConfig)

    # Reconciliation settings
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)

    # Collection names
    collections: CollectionConfig = field(default_factory=CollectionConfig)

    # Storage settings
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Authentication settings
    auth: AuthConfig = field(default_factory=AuthConfig)

    # Status endpoint cache lifetime (seconds)
    status_cache_timeout: int = 60


# Global configuration instance
config = AuditConfig()
