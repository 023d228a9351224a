"""Flask application factory."""
from flask import Flask, jsonify
from app.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (cash register summary)
    from app.services.cache_service import init_cache
    init_cache(app)

    # Prometheus request metrics
    from app.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Behind Nginx in production
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # Error Handlers
    from app.exceptions import LaundryError

    @app.errorhandler(LaundryError)
    def handle_laundry_error(error):
        """Serialize application exceptions as JSON."""
        if error.status_code >= 500:
            app.logger.error(f"LaundryError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"LaundryError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}", exc_info=True)
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from app.blueprints.main import main_bp
    from app.blueprints.orders import orders_bp
    from app.blueprints.deliveries import deliveries_bp
    from app.blueprints.drivers import drivers_bp
    from app.blueprints.operations import operations_bp
    from app.blueprints.cash_register import cash_register_bp
    from app.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(deliveries_bp)
    app.register_blueprint(drivers_bp)
    app.register_blueprint(operations_bp)
    app.register_blueprint(cash_register_bp)
    app.register_blueprint(metrics_bp)

    # CLI commands
    from app.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Laundry app started (env={app.config.get('ENV')}, "
                    f"reassignment={app.config.get('ALLOW_DRIVER_REASSIGNMENT')})")

    return app
