import logging
import secrets
from datetime import timedelta

from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
from flask_jwt_extended import JWTManager

import config
from database.db_connector import init_engine, init_db, db_session
from revenue.controllers.revenue_controller import revenue_bp
from storage.bunny_storage_service import init_bunny_storage, close_bunny_storage
from storage.local_storage import init_local_storage
from uploads.controllers.uploads_controller import uploads_bp

logger = logging.getLogger(__name__)


def create_app(test_config=None, bunny_storage=None):
    """
    Build the API application.

    Args:
        test_config: Overrides applied on top of the environment settings
        bunny_storage: Pre-built CDN client; by default one is built from settings
    """
    app = Flask(__name__)

    app.config.update(
        # Generate a secure secret key if not provided in environment
        JWT_SECRET_KEY=config.JWT_SECRET_KEY or secrets.token_hex(32),
        JWT_ACCESS_TOKEN_EXPIRES=timedelta(hours=12),
        JWT_TOKEN_LOCATION=['headers'],
        JWT_HEADER_NAME='Authorization',
        JWT_HEADER_TYPE='Bearer',
        MAX_CONTENT_LENGTH=config.MAX_CONTENT_LENGTH,
        DATABASE_URL=config.DATABASE_URL,
        UPLOAD_FOLDER=config.UPLOAD_FOLDER,
        PUBLIC_BASE_URL=config.PUBLIC_BASE_URL,
        UPLOADS_URL_PATH=config.UPLOADS_URL_PATH,
        BUNNY_STORAGE_ZONE_NAME=config.BUNNY_STORAGE_ZONE_NAME,
        BUNNY_STORAGE_PASSWORD=config.BUNNY_STORAGE_PASSWORD,
        BUNNY_PULL_ZONE_URL=config.BUNNY_PULL_ZONE_URL,
        BUNNY_STORAGE_API_URL=config.BUNNY_STORAGE_API_URL,
        CDN_UPLOAD_TIMEOUT=config.CDN_UPLOAD_TIMEOUT,
        CORS_ORIGINS='*',
    )
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    JWTManager(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    init_engine(app.config['DATABASE_URL'])
    init_db()

    init_local_storage(app)
    init_bunny_storage(app, bunny_storage)

    app.register_blueprint(uploads_bp, url_prefix='/api', name='api_uploads')
    app.register_blueprint(revenue_bp, url_prefix='/api', name='api_revenue')

    # Local fallback uploads are served back from here
    @app.route(f"{app.config['UPLOADS_URL_PATH'].rstrip('/')}/<path:filename>", methods=['GET'])
    def serve_upload(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    # Error handlers
    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({
            "status": "error",
            "message": "Resource not found"
        }), 404

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify({
            "success": False,
            "status": "error",
            "message": "File too large."
        }), 413

    @app.errorhandler(500)
    def internal_error(error):
        db_session.rollback()
        return jsonify({
            "status": "error",
            "message": "Internal server error"
        }), 500

    # Cleanup database session
    @app.teardown_appcontext
    def cleanup(resp):
        db_session.remove()

    return app


def shutdown_app(app):
    """Release process-lifetime clients held by the app"""
    close_bunny_storage(app)
