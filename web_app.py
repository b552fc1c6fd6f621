# web_app.py
import logging

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from auth_bp import auth_bp
from config import Config
from errors import HabitHiveError
from habits_bp import habits_bp
from habits_repo import FirestoreRepo
from local_storage import LocalStorage

logger = logging.getLogger(__name__)


def setup_logging(level="INFO"):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )


# ---------------- Firebase Admin ---------------- #
def init_firestore(credentials_path):
    """Return a Firestore client, or None when Firebase cannot be initialized."""
    try:
        try:
            firebase_admin.get_app()
            logger.info("Firebase Admin SDK already initialized")
        except ValueError:
            cred = credentials.Certificate(credentials_path)
            firebase_admin.initialize_app(cred)
            logger.info("Firebase Admin SDK initialized successfully")
        return firestore.client()
    except Exception as e:
        logger.warning("Firestore unavailable (%s); falling back to local storage", e)
        return None


# ---------------- Errors ---------------- #
def register_error_handlers(app):
    @app.errorhandler(HabitHiveError)
    def handle_domain_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"success": False, "error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error: %s", e)
        return jsonify({"success": False, "error": "Internal Server Error"}), 500


# ---------------- App factory ---------------- #
def create_app(overrides=None, firestore_db=None):
    """
    Build the API.

    ``overrides`` replaces settings from the environment (tests pass
    ``USE_FIRESTORE=False`` and ``STORAGE_FILE=None`` for an in-memory store).
    ``firestore_db`` injects a ready Firestore client.
    """
    settings = Config().as_dict()
    settings.update(overrides or {})
    setup_logging(settings["LOG_LEVEL"])

    app = Flask(__name__)
    app.config.update(settings)
    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        SESSION_COOKIE_SECURE=app.config["COOKIE_SECURE"],
    )

    if firestore_db is None and app.config["USE_FIRESTORE"]:
        firestore_db = init_firestore(app.config["FIREBASE_CREDENTIALS"])

    if firestore_db is not None:
        app.extensions["habit_store"] = FirestoreRepo(firestore_db)
        logger.info("Using Firestore storage")
    else:
        app.extensions["habit_store"] = LocalStorage(app.config["STORAGE_FILE"])
        logger.info("Using local storage (%s)", app.config["STORAGE_FILE"] or "in memory")

    app.register_blueprint(auth_bp, url_prefix="/backend/auth")
    app.register_blueprint(habits_bp, url_prefix="/backend/habits")
    register_error_handlers(app)

    @app.route('/backend/ping')
    def ping():
        return "pong", 200

    return app
