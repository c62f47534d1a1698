import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS

from biobox.config import BASE_DIR, Config
from biobox.models import db
from biobox.services import get_services, init_services
from biobox.utils.debug_routes import register_debug_routes
from biobox.utils.errors import register_error_handlers

# Blueprints
from biobox.blueprints.auth import auth_bp
from biobox.blueprints.orders import orders_bp
from biobox.blueprints.registry import customers_bp, products_bp, users_bp
from biobox.blueprints.settings import dashboard_bp, settings_bp


def create_app(config_overrides=None, store=None, identity_provider=None) -> Flask:
    """
    Cria a aplicação.

    Args:
        config_overrides: valores que sobrescrevem ``Config`` (usado nos testes)
        store: banco de documentos já montado (ignora ``REMOTE_BACKEND``)
        identity_provider: provedor de identidade já montado
    """
    logging.basicConfig(level=logging.INFO)

    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # CORS somente em /api/*
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
         supports_credentials=True)

    # Banco do cache local
    db.init_app(app)
    with app.app_context():
        if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") \
                and not app.config["SQLALCHEMY_DATABASE_URI"].endswith(":memory:"):
            os.makedirs(BASE_DIR / "instance", exist_ok=True)
        db.create_all()

    init_services(app, store=store, identity_provider=identity_provider)
    register_error_handlers(app)

    # Health check
    @app.route("/api/health", methods=["GET"])
    def health():
        info = get_services(app).gateway.get_store_info()
        return jsonify({"status": "healthy", "service": "BioBox Backend", "store": info}), 200

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(orders_bp, url_prefix="/api/orders")
    app.register_blueprint(customers_bp, url_prefix="/api/customers")
    app.register_blueprint(products_bp, url_prefix="/api/products")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")
    app.register_blueprint(dashboard_bp, url_prefix="/api/dashboard")
    register_debug_routes(app)

    return app


if __name__ == "__main__":
    # execução local
    create_app().run(host="127.0.0.1", port=5001, debug=True)
