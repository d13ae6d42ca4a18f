# backend/udhaar/__init__.py
from flask import Flask, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    """
    Application factory.

    config_overrides is applied after Config and before the extensions bind,
    so tests can point SQLALCHEMY_DATABASE_URI at an in-memory database.
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before Alembic autogenerates against db.metadata
    from . import models  # noqa: F401

    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.checkout import checkout_bp
    from .routes.invoices import invoices_bp
    from .routes.reports import reports_bp

    for blueprint in (system_bp, auth_bp, products_bp, customers_bp, checkout_bp, invoices_bp, reports_bp):
        app.register_blueprint(blueprint)

    @app.errorhandler(HTTPException)
    def json_http_error(exc):
        # Counter UI expects {"error": ...} bodies, never Werkzeug's HTML pages
        return {"error": exc.description or exc.name}, exc.code

    allowed_origins = set(app.config["CORS_ALLOWED_ORIGINS"])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
