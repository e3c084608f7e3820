"""
Operator action trail.

Every night audit action (preview, finalize) is recorded as one document in
the activity collection. Logging is best-effort: a failure is logged and
reported as False, the action itself is never interrupted.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import has_request_context, request

from storage import DocumentRepository, StorageError

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Write operator actions to the activity collection.

    Documents carry: ts, userId, userName, action, entity, entityId, details,
    plus the client IP and user agent when called inside a request.
    """

    def __init__(self, repository: DocumentRepository, collection: str = 'auditLogs'):
        self.repository = repository
        self.collection = collection

    def log_action(
        self,
        user: Optional[Dict[str, Any]],
        action: str,
        entity: str,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Record an action.

        Args:
            user: User info dictionary from get_current_user() (None for system)
            action: What was done (e.g., 'night_audit.finalize')
            entity: Kind of thing acted on (e.g., 'nightAudit')
            entity_id: Key of the thing acted on (e.g., the business day)
            details: Optional dictionary of additional details

        Returns:
            True if the action was recorded, False otherwise
        """
        user = user or {}
        document = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'userId': user.get('user_id'),
            'userName': user.get('name'),
            'action': action,
            'entity': entity,
            'entityId': entity_id,
            'details': details or {},
        }
        if has_request_context():
            document['ipAddress'] = self._get_client_ip()
            document['userAgent'] = request.headers.get('User-Agent', '')

        key = uuid.uuid4().hex
        try:
            self.repository.set_document(self.collection, key, document)
        except StorageError as e:
            logger.error(f"[ACTIVITY] Failed to log '{action}' on {entity}/{entity_id}: {e}")
            return False

        logger.info(f"[ACTIVITY] {action} on {entity}/{entity_id} by {document['userName'] or 'system'}")
        return True

    def _get_client_ip(self) -> str:
        """Get the client's IP address, accounting for proxies."""
        forwarded_for = request.headers.get('X-Forwarded-For')
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(',')[0].strip()
        return request.remote_addr or 'Unknown'
