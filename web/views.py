"""
Flask views for the Night Audit service.

"Run (preview)" and "Finalize" both run the full audit; only finalize
persists. The status endpoint tells the front desk whether today's business
day has been closed.
"""
from flask import Blueprint, request, jsonify, current_app
import logging

from activity_logging import ActivityLogger
from night_audit import AuditLoadError, NightAuditOptions, run_night_audit, get_audit_status
from storage import DocumentRepository, StorageError
from web.auth import require_permission, get_current_user, get_user_display_name
from web.cache import cache, status_cache_key

logger = logging.getLogger(__name__)
bp = Blueprint('night_audit', __name__, url_prefix='/night-audit')

RUN_PERMISSION = 'canRunNightAudit'


def get_repository() -> DocumentRepository:
    """Document store configured on the application."""
    return current_app.config['REPOSITORY']


def get_audit_config():
    return current_app.config['AUDIT_CONFIG']


def _request_tz_offset() -> int:
    """tzOffset from the JSON body or query string, defaulting to the configured offset."""
    payload = request.get_json(silent=True) or {}
    raw = payload.get('tzOffset', request.args.get('tzOffset'))
    if raw is None or raw == '':
        return get_audit_config().business_day.tz_offset_hours
    if isinstance(raw, bool):
        raise ValueError("tzOffset must be an integer number of hours")
    value = float(raw)
    if not value.is_integer() or not -12 <= value <= 14:
        raise ValueError("tzOffset must be an integer number of hours between -12 and 14")
    return int(value)


def _log_action(action: str, entity_id: str, details: dict) -> None:
    audit_config = get_audit_config()
    if not audit_config.auth.enable_activity_logging:
        return
    activity = ActivityLogger(get_repository(), audit_config.collections.activity)
    activity.log_action(get_current_user(), action, 'nightAudit', entity_id, details)


def _error(message: str, status: int):
    return jsonify({'success': False, 'error': message, 'issues': [], 'summary': None}), status


def _run(finalize: bool):
    try:
        tz_offset = _request_tz_offset()
    except (TypeError, ValueError) as e:
        return _error(str(e), 400)

    options = NightAuditOptions(tz_offset=tz_offset, run_by=get_user_display_name(), finalize=finalize)

    try:
        result = run_night_audit(get_repository(), options, audit_config=get_audit_config())
    except AuditLoadError as e:
        logger.error(f"Night audit could not run: {e}")
        return _error(str(e), 503)

    business_day = result.summary['businessDay']
    details = {'issuesCount': result.summary['issuesCount'], 'tzOffset': tz_offset}

    if finalize:
        cache.delete(status_cache_key(tz_offset))
        details['complete'] = result.finalize_report.complete
        details['strategy'] = result.finalize_report.strategy
        _log_action('night_audit.finalize', business_day, details)
    else:
        _log_action('night_audit.preview', business_day, details)

    return jsonify(result.to_dict())


@bp.route('/run', methods=['POST'])
@require_permission(RUN_PERMISSION)
def run_preview():
    """Run the audit without persisting anything."""
    return _run(finalize=False)


@bp.route('/finalize', methods=['POST'])
@require_permission(RUN_PERMISSION)
def finalize():
    """Run the audit and persist the run log, snapshot and new issues."""
    return _run(finalize=True)


@bp.route('/status', methods=['GET'])
@require_permission(RUN_PERMISSION)
def status():
    """Whether the current business day has been finalized (cached)."""
    try:
        tz_offset = _request_tz_offset()
    except (TypeError, ValueError) as e:
        return _error(str(e), 400)

    key = status_cache_key(tz_offset)
    cached = cache.get(key)
    if cached is not None:
        return jsonify(cached)

    audit_config = get_audit_config()
    try:
        audit_status = get_audit_status(
            get_repository(),
            tz_offset,
            audit_config.collections,
            cutover_hour=audit_config.business_day.cutover_hour,
        )
    except StorageError as e:
        logger.error(f"[STORAGE] Status lookup failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 503

    audit_status['success'] = True
    cache.set(key, audit_status, timeout=audit_config.status_cache_timeout)
    return jsonify(audit_status)
