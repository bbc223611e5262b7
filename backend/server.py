"""
Flask application entry point for the referral coordination backend.

Wires storage (SQL or local demo document), the payment processor and the
services, then registers the JSON API blueprints.
"""

import logging

from flask import Flask, jsonify

from rcn.config import config
from rcn.api import directory_bp, organizations_bp, payments_bp, referrals_bp
from rcn.api.common import EXTENSION_KEY, Services
from rcn.db.demo_store import DemoStore
from rcn.db.postgres import close_db_session
from rcn.errors import ReferralError
from rcn.routes.auth import bp as auth_bp
from rcn.services import (
    AuthService,
    DemoPaymentProcessor,
    InboxService,
    OrganizationService,
    ReferralService,
    ReferralStatusEngine,
    StripePaymentProcessor,
)

logger = logging.getLogger("rcn.server")


def _build_repositories(settings: dict):
    """(referral repository, directory repository) for the configured backend."""
    if settings["STORAGE_BACKEND"] == "sql":
        from rcn.db.postgres import get_engine
        from rcn.repositories.sql import SqlDirectoryRepository, SqlReferralRepository

        get_engine(settings.get("DATABASE_URL") or config.get_database_url())
        return SqlReferralRepository(), SqlDirectoryRepository()

    store = DemoStore(
        settings["DEMO_STORE_PATH"],
        storage_key=settings["DEMO_STORAGE_KEY"],
        seed_on_first_load=settings["DEMO_SEED_ON_FIRST_LOAD"],
    )
    return store, store


def _build_processor(settings: dict, directory):
    pricing = {
        "price_per_referral": settings["PRICE_PER_REFERRAL"],
        "fee_percent": settings["PROCESSING_FEE_PERCENT"],
        "currency": settings["CURRENCY"],
    }
    if settings.get("STRIPE_SECRET_KEY"):
        return StripePaymentProcessor(directory, settings["STRIPE_SECRET_KEY"], **pricing)
    return DemoPaymentProcessor(directory, **pricing)


def create_app(
    config_overrides: dict = None,
    referral_repository=None,
    directory_repository=None,
    payment_processor=None,
):
    """Create and configure Flask app."""
    app = Flask(__name__)

    # Load config
    settings = config.as_dict()
    settings.update(config_overrides or {})
    app.config.update(settings)

    if referral_repository is None or directory_repository is None:
        referral_repository, directory_repository = _build_repositories(settings)
    processor = payment_processor or _build_processor(settings, directory_repository)

    engine = ReferralStatusEngine()
    auth = AuthService(
        directory_repository,
        settings["JWT_SECRET"],
        jwt_algorithm=settings["JWT_ALGORITHM"],
        access_token_expire_minutes=settings["ACCESS_TOKEN_EXPIRE_MINUTES"],
    )
    app.extensions[EXTENSION_KEY] = Services(
        referrals=ReferralService(referral_repository, directory_repository, processor, engine=engine),
        inbox=InboxService(referral_repository, directory_repository, engine),
        auth=auth,
        organizations=OrganizationService(directory_repository, auth),
        engine=engine,
    )

    # Enable CORS for the web client
    @app.after_request
    def after_request(response):
        response.headers.add("Access-Control-Allow-Origin", "*")
        response.headers.add("Access-Control-Allow-Headers", "Content-Type,Authorization")
        response.headers.add("Access-Control-Allow-Methods", "GET,PUT,POST,DELETE,OPTIONS")
        return response

    @app.errorhandler(ReferralError)
    def handle_referral_error(error):
        return jsonify(error.to_dict()), error.status_code

    # Clean up database session at the end of each request
    if settings["STORAGE_BACKEND"] == "sql":
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            close_db_session(exception)

    # Register blueprints
    app.register_blueprint(auth_bp)           # /api/v1/auth/*
    app.register_blueprint(organizations_bp)  # /api/v1/organizations/*
    app.register_blueprint(directory_bp)      # /api/v1/directory/*
    app.register_blueprint(referrals_bp)      # /api/v1/referrals/*
    app.register_blueprint(payments_bp)       # /api/v1/payments/*

    # Health check endpoint
    @app.route("/health")
    def health():
        return {
            "status": "ok",
            "storage_backend": settings["STORAGE_BACKEND"],
            "payment_processor": processor.__class__.__name__,
        }

    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, str(config.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    logger.info("Starting server on port 5001 (storage: %s)", config.STORAGE_BACKEND)
    logger.info("Routes: /api/v1/auth/*, /api/v1/organizations/*, /api/v1/referrals/*, /api/v1/payments/*, /health")
    app.run(debug=config.DEBUG, port=5001)
