"""
Flask application factory for the Night Audit service.
"""
from flask import Flask, g, request, jsonify
import logging
import os

from web.cache import cache

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Silence per-request connection logging
logging.getLogger("urllib3").setLevel(logging.WARNING)


def create_app(test_config=None):
    """
    Application factory pattern.

    Args:
        test_config: Optional mapping applied over the defaults. 'AUDIT_CONFIG'
            replaces the configuration tree and 'REPOSITORY' the document store.

    Returns:
        Configured Flask application instance
    """
    from config import config
    from storage import get_repository

    app = Flask(__name__)

    # App configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Cache configuration
    # Use SimpleCache for single-worker deployments
    # For multi-worker: switch to Redis or FileSystemCache
    app.config['CACHE_TYPE'] = 'SimpleCache'
    app.config['CACHE_DEFAULT_TIMEOUT'] = config.status_cache_timeout

    if test_config:
        app.config.update(test_config)

    app.config.setdefault('AUDIT_CONFIG', config)
    if app.config.get('REPOSITORY') is None:
        app.config['REPOSITORY'] = get_repository(app.config['AUDIT_CONFIG'].storage)

    # Initialize cache with app
    cache.init_app(app)

    app.logger.info(f"[CACHE] Initialized {app.config['CACHE_TYPE']} with {app.config['CACHE_DEFAULT_TIMEOUT']}s timeout")
    app.logger.info(f"[STORAGE] Using {type(app.config['REPOSITORY']).__name__}")

    # Register blueprints
    from web.views import bp as night_audit_bp
    app.register_blueprint(night_audit_bp)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    @app.before_request
    def log_request_info():
        app.logger.debug(f"Request: {request.method} {request.path}")

    @app.after_request
    def log_response_info(response):
        user = getattr(g, 'user', None)
        who = (user.get('email') or user.get('user_id')) if user else 'anonymous'
        app.logger.info(f"{request.method} {request.path} -> {response.status_code} ({who})")
        return response

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
