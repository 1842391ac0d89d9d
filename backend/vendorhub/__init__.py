# backend/vendorhub/__init__.py
from flask import Flask, jsonify

from .config import Config
from .errors import (
    ActorNotPermitted,
    BusinessRuleError,
    EntityNotFound,
    InconsistentTotals,
    PersistenceFailure,
    ValidationFailed,
)
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None, dispatcher=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    if dispatcher is None:
        from .tasks import DramatiqDispatcher
        dispatcher = DramatiqDispatcher()

    from .wiring import build_services
    build_services(app, dispatcher)

    # Register blueprints
    from .routes.orders import orders_bp
    from .routes.inventory import inventory_bp

    app.register_blueprint(orders_bp)
    app.register_blueprint(inventory_bp)

    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """Map the service error kinds to JSON responses."""

    @app.errorhandler(ValidationFailed)
    def _validation_failed(e):
        return jsonify({"error": str(e), "details": e.details}), 400

    @app.errorhandler(EntityNotFound)
    def _not_found(e):
        return jsonify({"error": e.message, "details": e.details}), 404

    @app.errorhandler(ActorNotPermitted)
    def _forbidden(e):
        return jsonify({"error": e.message, "details": e.details}), 403

    @app.errorhandler(BusinessRuleError)
    def _conflict(e):
        return jsonify({"error": e.message, "details": e.details}), 409

    @app.errorhandler(InconsistentTotals)
    def _inconsistent_totals(e):
        app.logger.error("Order totals check failed: %s %s", e.message, e.details)
        return jsonify({"error": "Order totals are inconsistent", "order_number": e.order_number}), 500

    @app.errorhandler(PersistenceFailure)
    def _persistence_failure(e):
        app.logger.error("Persistence failure: %s", e)
        return jsonify({"error": "Temporarily unavailable, please retry"}), 503
