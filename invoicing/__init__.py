"""Flask application factory."""
import logging
import os
import traceback

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from invoicing.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    if not app.config.get('TESTING'):
        logging.basicConfig(
            level=logging.DEBUG if app.config.get('DEBUG') else logging.INFO,
            format='%(asctime)s %(levelname)s %(name)s: %(message)s'
        )

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

    # Redis cache for catalog reads
    from invoicing.services.cache_service import init_cache
    init_cache(app)

    # Prometheus request metrics
    from invoicing.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # HTTPS behind a reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    init_db(app)

    from invoicing.middleware import load_user_and_company

    @app.before_request
    def before_request_handler():
        """Resolve the bearer token (if any) into g.user / g.company_id."""
        load_user_and_company()

    # Error Handlers
    from invoicing.exceptions import InvoicingError

    @app.errorhandler(InvoicingError)
    def handle_invoicing_error(error):
        """Render application exceptions as JSON with their status code."""
        app.logger.warning(f"{error.kind} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'kind': 'NotFound', 'message': 'Not Found'}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from invoicing.blueprints.auth import auth_bp
    from invoicing.blueprints.items import items_bp
    from invoicing.blueprints.invoices import invoices_bp
    from invoicing.blueprints.metrics import metrics_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(metrics_bp)

    from invoicing.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
