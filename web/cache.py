"""
Shared Flask-Caching instance (configured in create_app).
"""
from flask_caching import Cache

cache = Cache()


def status_cache_key(tz_offset: int) -> str:
    return f"night_audit_status:{tz_offset}"
