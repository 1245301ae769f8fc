# backend/posledger/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def _engine_options(app: Flask) -> None:
    # SQLite waits on the writer lock through the driver busy timeout
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if uri.startswith("sqlite"):
        options = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
        connect_args = dict(options.get("connect_args") or {})
        connect_args.setdefault("timeout", float(app.config["LOCK_TIMEOUT_SECONDS"]))
        options["connect_args"] = connect_args
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    _engine_options(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.customers import customers_bp
    from .routes.cashflow import cashflow_bp
    from .routes.reports import reports_bp
    from .routes.stores import stores_bp, quota_bp
    from .routes.users import users_bp
    from .routes.subscriptions import subscriptions_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(cashflow_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(quota_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(subscriptions_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
