"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from commerce.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for tenant and catalog reads
    from commerce.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from commerce.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust X-Forwarded-* from the reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Identity verification and payment providers
    from commerce.services.identity_service import TokenVerifier
    from commerce.payments import build_providers
    app.extensions['identity_verifier'] = TokenVerifier.from_config(app.config)
    app.extensions['payment_providers'] = build_providers(app.config)

    # Classify the caller before each request
    from commerce.middleware import load_identity
    app.before_request(load_identity)

    # Error Handlers
    from commerce.exceptions import CommerceError

    @app.errorhandler(CommerceError)
    def handle_commerce_error(error):
        """Render application exceptions as JSON."""
        log = app.logger.warning if error.status_code < 500 else app.logger.error
        log(f"{error.__class__.__name__} [{error.status_code} {error.code}] {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or 'error').upper().replace(' ', '_')
        return jsonify({'status': 'error', 'error': code, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({
            'status': 'error',
            'error': 'INTERNAL_ERROR',
            'message': 'Internal Server Error'
        }), 500

    # Register blueprints
    from commerce.blueprints.auth import auth_bp
    from commerce.blueprints.storefront import storefront_bp
    from commerce.blueprints.admin import admin_bp
    from commerce.blueprints.platform import platform_bp
    from commerce.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(storefront_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(platform_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from commerce.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
