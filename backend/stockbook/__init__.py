# backend/stockbook/__init__.py
from flask import Flask, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import StockbookError
from .extensions import init_storage

__version__ = "0.3.0"


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Storage context: built once, passed explicitly to every service call
    init_storage(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.suppliers import suppliers_bp
    from .routes.inventory import inventory_bp
    from .routes.payables import payables_bp
    from .routes.ledger import ledger_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(payables_bp)
    app.register_blueprint(ledger_bp)
    app.register_blueprint(reports_bp)

    @app.errorhandler(StockbookError)
    def handle_stockbook_error(exc: StockbookError):
        if exc.status >= 500:
            app.logger.error("%s on %s: %s", exc.code, request.path, exc.message)
        return exc.as_dict(), exc.status

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return {"error": exc.description, "code": exc.name.upper().replace(" ", "_")}, exc.code
        app.logger.exception("Unhandled error on %s", request.path)
        return {"error": "Internal server error", "code": "INTERNAL_ERROR"}, 500

    allowed_origins = set(app.config.get("STOCKBOOK_CORS_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
