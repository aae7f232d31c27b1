# backend/backoffice/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.masters import master_blueprints
    from .routes.purchasing import purchase_grns_bp, purchase_orders_bp, purchase_returns_bp
    from .routes.stock import dispatch_bp, adjustments_bp, opening_stock_bp, stock_bp
    from .routes.sales import sales_blueprints, sales_returns_bp, quotations_bp
    from .routes.accounts import opening_balance_blueprints, supplier_payments_bp, customer_payments_bp

    app.register_blueprint(system_bp)
    for bp in master_blueprints:
        app.register_blueprint(bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(purchase_grns_bp)
    app.register_blueprint(purchase_returns_bp)
    app.register_blueprint(dispatch_bp)
    app.register_blueprint(adjustments_bp)
    app.register_blueprint(opening_stock_bp)
    app.register_blueprint(stock_bp)
    for bp in sales_blueprints:
        app.register_blueprint(bp)
    app.register_blueprint(sales_returns_bp)
    app.register_blueprint(quotations_bp)
    for bp in opening_balance_blueprints:
        app.register_blueprint(bp)
    app.register_blueprint(supplier_payments_bp)
    app.register_blueprint(customer_payments_bp)

    from .responses import register_error_handlers
    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
