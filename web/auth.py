"""
Bearer-token authentication and permission checks.

Requests carry a signed JWT in the Authorization header. The token's
`permissions` claim is an array of permission strings; running the night
audit needs `canRunNightAudit` (or the `*` wildcard).
"""
import jwt
import logging
from functools import wraps
from typing import Optional, Dict, Any, List
from flask import request, jsonify, g, current_app

from config import AuthConfig

logger = logging.getLogger(__name__)

LOCAL_DEV_USER = {
    'user_id': 'local-dev-user',
    'name': 'Local Developer',
    'email': 'dev@localhost',
    'identity_provider': 'local',
}


class AuthenticationError(Exception):
    """Raised when a bearer token is missing or invalid."""


def _auth_config() -> AuthConfig:
    return current_app.config['AUDIT_CONFIG'].auth


def get_bearer_token() -> Optional[str]:
    """Extract the bearer token from the Authorization header."""
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def decode_token(token: str, auth_config: AuthConfig) -> Dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: If verification is not configured or the token is invalid
    """
    if not auth_config.is_configured():
        raise AuthenticationError("Token verification is not configured (AUTH_JWT_KEY)")

    options = {} if auth_config.jwt_audience else {"verify_aud": False}
    try:
        return jwt.decode(
            token,
            auth_config.jwt_key,
            algorithms=auth_config.jwt_algorithms,
            audience=auth_config.jwt_audience,
            options=options,
        )
    except jwt.PyJWTError as e:
        raise AuthenticationError(str(e)) from e


def _permissions_from_claims(claims: Dict[str, Any], claim_name: str) -> List[str]:
    permissions = claims.get(claim_name) or []
    if isinstance(permissions, str):
        return [permissions]
    if isinstance(permissions, (list, tuple)):
        return [str(p) for p in permissions]
    logger.warning(f"[AUTH] Ignoring '{claim_name}' claim of type {type(permissions).__name__}")
    return []


def build_user(claims: Dict[str, Any], auth_config: AuthConfig) -> Dict[str, Any]:
    """
    Build the user info dictionary from token claims.

    Returns:
        {
            'user_id': str,          # 'sub' claim
            'name': str,             # Display name
            'email': str,            # Email address
            'permissions': list,     # Permission strings
            'claims': dict,          # All claims from token
            'identity_provider': str
        }
    """
    return {
        'user_id': claims.get('sub', claims.get('user_id', '')),
        'name': claims.get('name', claims.get('preferred_username', 'Unknown User')),
        'email': claims.get('email', claims.get('upn', '')),
        'permissions': _permissions_from_claims(claims, auth_config.permissions_claim),
        'claims': claims,
        'identity_provider': claims.get('iss', 'jwt'),
    }


def has_permission(user: Optional[Dict[str, Any]], permission: str, auth_config: AuthConfig) -> bool:
    """Check a user holds a permission directly or via the wildcard."""
    if not user:
        return False
    permissions = user.get('permissions') or []
    return permission in permissions or auth_config.wildcard_permission in permissions


def get_current_user() -> Optional[Dict[str, Any]]:
    """
    Get the current authenticated user from Flask's g object.

    This should be called after require_permission has run and populated g.user.
    """
    return getattr(g, 'user', None)


def get_user_display_name() -> str:
    """Display name (or email) of the current user, 'system' when unauthenticated."""
    user = get_current_user()
    if not user:
        return 'system'
    return user.get('name') or user.get('email') or 'system'


def _authenticate(auth_config: AuthConfig) -> Dict[str, Any]:
    if not auth_config.require_auth:
        # Local development mode - mock user holding every permission
        logger.debug("[AUTH] REQUIRE_AUTH=false, using local development user")
        return dict(LOCAL_DEV_USER, permissions=[auth_config.wildcard_permission])

    token = get_bearer_token()
    if token is None:
        raise AuthenticationError("Missing bearer token")
    return build_user(decode_token(token, auth_config), auth_config)


def require_permission(permission: str):
    """
    Decorator to require an authenticated user holding a permission.

    Returns 401 when no valid token is presented and 403 when the user lacks
    the permission.

    Usage:
        @bp.route('/night-audit/run', methods=['POST'])
        @require_permission('canRunNightAudit')
        def run():
            user = get_current_user()
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            auth_config = _auth_config()
            try:
                user = _authenticate(auth_config)
            except AuthenticationError as e:
                logger.warning(f"[AUTH] Unauthorized access attempt to {request.path}: {e}")
                return jsonify({
                    'success': False,
                    'error': 'Unauthorized',
                    'message': 'A valid bearer token is required.'
                }), 401

            if not has_permission(user, permission, auth_config):
                logger.warning(f"[AUTH] {user.get('email') or user.get('user_id')} lacks '{permission}' for {request.path}")
                return jsonify({
                    'success': False,
                    'error': 'Forbidden',
                    'message': f"Permission '{permission}' required."
                }), 403

            g.user = user
            return f(*args, **kwargs)

        return decorated_function
    return decorator
