"""Flask application factory and service client initialization."""
from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from config import (
    ALLOWED_IMAGE_MIME_TYPES,
    APP_SECRET_KEY,
    AVATAR_FOLDER,
    CLOUDINARY_API_KEY,
    CLOUDINARY_API_SECRET,
    CLOUDINARY_CLOUD_NAME,
    DB_CONNECT_TIMEOUT_SECONDS,
    DB_DSN,
    DB_POOL_SIZE,
    GAME_IMAGE_FOLDER,
    LOG_FILE,
    MAX_UPLOAD_BYTES,
    RUN_DB_MIGRATIONS,
    cloudinary_configured,
)
from db import utils as db_utils
from errors import PayloadTooLargeError
from init import initialize_app
from media.images import normalize_image
from media.store import CloudinaryImageStore, ImageStore
from routes import games as routes_games
from routes import users as routes_users
from routes import web as routes_web

logger = logging.getLogger(__name__)

# Multipart framing and text fields on top of the file itself.
_FORM_OVERHEAD_BYTES = 1024 * 1024


def _determine_log_level(flask_app: Flask) -> int:
    if flask_app.debug:
        return logging.DEBUG
    if os.environ.get('FLASK_DEBUG', '').lower() in {'1', 'true', 'yes', 'on'}:
        return logging.DEBUG
    return logging.INFO


def _configure_logging(flask_app: Flask, log_file: str) -> None:
    log_level = _determine_log_level(flask_app)
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(flask_app.logger.handlers):
        flask_app.logger.removeHandler(handler)

    logging.config.dictConfig(
        {
            'version': 1,
            'disable_existing_loggers': False,
            'formatters': {
                'standard': {
                    'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
                    'datefmt': '%Y-%m-%d %H:%M:%S',
                }
            },
            'handlers': {
                'console': {
                    'class': 'logging.StreamHandler',
                    'formatter': 'standard',
                    'level': log_level,
                    'stream': 'ext://sys.stdout',
                },
                'file': {
                    'class': 'logging.handlers.RotatingFileHandler',
                    'formatter': 'standard',
                    'level': logging.DEBUG,
                    'filename': os.fspath(log_path),
                    'maxBytes': 5 * 1024 * 1024,
                    'backupCount': 5,
                    'encoding': 'utf-8',
                },
            },
            'root': {
                'level': log_level,
                'handlers': ['console', 'file'],
            },
        }
    )

    flask_app.logger.setLevel(log_level)
    logger.setLevel(log_level)


def _register_error_handlers(flask_app: Flask) -> None:
    @flask_app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        flask_app.logger.warning("File upload too large for path %s", request.path)
        error = PayloadTooLargeError()
        return jsonify(error.to_dict()), error.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({'error': e.description or e.name}), e.code or 500

    @flask_app.errorhandler(Exception)
    def handle_exception(e):
        flask_app.logger.exception("Unhandled exception")
        return jsonify({'error': 'Internal server error'}), 500


def _build_image_store() -> ImageStore:
    if not cloudinary_configured():
        logger.warning(
            "Image uploads are disabled; avatar and game image requests will fail"
        )
    return CloudinaryImageStore(
        cloud_name=CLOUDINARY_CLOUD_NAME,
        api_key=CLOUDINARY_API_KEY,
        api_secret=CLOUDINARY_API_SECRET,
    )


def configure_blueprints(
    flask_app: Flask,
    *,
    engine: db_utils.DatabaseEngine,
    image_store: ImageStore,
    max_upload_bytes: int,
) -> None:
    def get_db() -> db_utils.DatabaseHandle:
        return db_utils.get_db(lambda: engine)

    upload_context = {
        'get_db': get_db,
        'image_store': image_store,
        'normalize_image': normalize_image,
        'max_upload_bytes': max_upload_bytes,
        'allowed_mime_types': ALLOWED_IMAGE_MIME_TYPES,
    }
    routes_users.configure({**upload_context, 'avatar_folder': AVATAR_FOLDER})
    routes_games.configure({**upload_context, 'game_image_folder': GAME_IMAGE_FOLDER})

    flask_app.register_blueprint(routes_web.web_blueprint)
    flask_app.register_blueprint(routes_users.users_blueprint)
    flask_app.register_blueprint(routes_games.games_blueprint)


def create_app(
    *,
    db_dsn: str | None = None,
    image_store: ImageStore | None = None,
    max_upload_bytes: int = MAX_UPLOAD_BYTES,
    run_migrations: bool = RUN_DB_MIGRATIONS,
    log_file: str = LOG_FILE,
    testing: bool = False,
) -> Flask:
    """Return a configured Flask application instance.

    The database engine and image store are created once here and shared by
    every request the application serves.
    """
    flask_app = Flask('game_store')
    flask_app.secret_key = APP_SECRET_KEY
    flask_app.config['MAX_CONTENT_LENGTH'] = max_upload_bytes + _FORM_OVERHEAD_BYTES
    if testing:
        flask_app.config['TESTING'] = True
        flask_app.testing = True

    _configure_logging(flask_app, log_file)
    _register_error_handlers(flask_app)

    dsn = db_dsn or DB_DSN
    engine = initialize_app(
        connection_factory=lambda: db_utils.build_engine_from_dsn(
            dsn,
            timeout=DB_CONNECT_TIMEOUT_SECONDS,
            pool_size=DB_POOL_SIZE,
        ),
        run_migrations=run_migrations,
    )
    flask_app.extensions['game_store.engine'] = engine

    @flask_app.teardown_appcontext
    def close_db(exc):
        db_utils.close_db()

    configure_blueprints(
        flask_app,
        engine=engine,
        image_store=image_store or _build_image_store(),
        max_upload_bytes=max_upload_bytes,
    )
    logger.info("Application configured (database: %s)", engine.engine.dialect.name)
    return flask_app
