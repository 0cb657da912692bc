"""Application-wide configuration helpers and constants."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final, Mapping
from urllib.parse import quote_plus

from dotenv import load_dotenv

BASE_DIR: Final[Path] = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env")


logger = logging.getLogger(__name__)


def _clean_text(value: str | None) -> str:
    """Return ``value`` stripped of surrounding whitespace."""

    if value is None:
        return ""
    return value.strip()


def _path_from(env_value: str | None, default: str | Path) -> Path:
    """Resolve a filesystem path using an environment override when provided."""

    text = _clean_text(env_value)
    candidate = Path(text) if text else Path(default)
    candidate = candidate.expanduser()
    if candidate.is_absolute():
        try:
            return candidate.resolve()
        except (OSError, RuntimeError):  # pragma: no cover - fallback for exotic paths
            return candidate
    return candidate


def _coerce_positive_float(value: str | None, default: float) -> float:
    """Return ``value`` coerced to a positive float or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = float(text)
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_positive_int(value: str | None, default: int) -> int:
    """Return ``value`` coerced to a positive integer or ``default`` when invalid."""

    text = _clean_text(value)
    if not text:
        return default
    try:
        numeric = int(float(text))
    except (TypeError, ValueError):
        return default
    return numeric if numeric > 0 else default


def _coerce_truthy_env(value: str | None) -> bool:
    """Return ``True`` when ``value`` represents an affirmative flag."""

    if value is None:
        return False
    text = value.strip().lower()
    return text in {"1", "true", "yes", "on"}


LOG_DIR_PATH: Final[Path] = _path_from(os.environ.get("LOG_DIR"), BASE_DIR / "logs")
LOG_DIR: Final[str] = os.fspath(LOG_DIR_PATH)
LOG_FILE_PATH: Final[Path] = _path_from(
    os.environ.get("LOG_FILE"), LOG_DIR_PATH / "app.log"
)
LOG_FILE: Final[str] = os.fspath(LOG_FILE_PATH)

_DB_ENV_KEYS: Final[tuple[str, ...]] = (
    "DB_HOST",
    "DB_PORT",
    "DB_NAME",
    "DB_USER",
    "DB_PASSWORD",
)


def _build_db_dsn(environ: Mapping[str, str] | None = None) -> str:
    """Return a database DSN constructed from environment configuration.

    ``DB_DSN`` wins outright. Any of the ``DB_*`` connection settings selects
    MySQL through PyMySQL; with none set the app uses a local SQLite file.
    """

    env = os.environ if environ is None else environ

    explicit = _clean_text(env.get("DB_DSN"))
    if explicit:
        return explicit

    settings = {key: _clean_text(env.get(key)) for key in _DB_ENV_KEYS}
    if any(settings.values()):
        host = settings["DB_HOST"] or "localhost"
        port = _coerce_positive_int(settings["DB_PORT"], 3306)
        name = settings["DB_NAME"] or "game_store"
        auth = ""
        if settings["DB_USER"]:
            auth = quote_plus(settings["DB_USER"])
            if settings["DB_PASSWORD"]:
                auth = f"{auth}:{quote_plus(settings['DB_PASSWORD'])}"
            auth = f"{auth}@"
        return f"mysql+pymysql://{auth}{host}:{port}/{name}?charset=utf8mb4"

    sqlite_path = _path_from(None, BASE_DIR / "game_store.db").resolve()
    return f"sqlite:///{sqlite_path.as_posix()}"


DB_DSN: Final[str] = _build_db_dsn()

DB_POOL_SIZE: Final[int] = _coerce_positive_int(os.environ.get("DB_POOL_SIZE"), 10)
DB_CONNECT_TIMEOUT_SECONDS: Final[float] = _coerce_positive_float(
    os.environ.get("DB_CONNECT_TIMEOUT"), 10.0
)
RUN_DB_MIGRATIONS: Final[bool] = _coerce_truthy_env(
    os.environ.get("RUN_DB_MIGRATIONS")
)

CLOUDINARY_CLOUD_NAME: Final[str] = _clean_text(os.environ.get("CLOUDINARY_CLOUD_NAME"))
CLOUDINARY_API_KEY: Final[str] = _clean_text(os.environ.get("CLOUDINARY_API_KEY"))
CLOUDINARY_API_SECRET: Final[str] = _clean_text(os.environ.get("CLOUDINARY_API_SECRET"))

MAX_UPLOAD_BYTES: Final[int] = _coerce_positive_int(
    os.environ.get("MAX_UPLOAD_BYTES"), 10 * 1024 * 1024
)
IMAGE_SIZE: Final[int] = _coerce_positive_int(os.environ.get("IMAGE_SIZE"), 512)
IMAGE_QUALITY: Final[int] = min(
    _coerce_positive_int(os.environ.get("IMAGE_QUALITY"), 90), 100
)
ALLOWED_IMAGE_MIME_TYPES: Final[frozenset[str]] = frozenset(
    {"image/jpeg", "image/png", "image/webp"}
)
AVATAR_FOLDER: Final[str] = "avatars"
GAME_IMAGE_FOLDER: Final[str] = "games"

APP_SECRET_KEY: Final[str] = _clean_text(os.environ.get("APP_SECRET_KEY")) or "dev-secret"
PORT: Final[int] = _coerce_positive_int(os.environ.get("PORT"), 3000)


def cloudinary_configured() -> bool:
    """Return ``True`` when all Cloudinary credentials are present."""

    missing = [
        name
        for name, value in (
            ("CLOUDINARY_CLOUD_NAME", CLOUDINARY_CLOUD_NAME),
            ("CLOUDINARY_API_KEY", CLOUDINARY_API_KEY),
            ("CLOUDINARY_API_SECRET", CLOUDINARY_API_SECRET),
        )
        if not value
    ]
    if missing:
        logger.error(
            "Missing Cloudinary credentials; set %s.", ", ".join(missing)
        )
    return not missing


def _validate_settings() -> None:
    """Sanity-check critical configuration values."""

    if not APP_SECRET_KEY:
        raise RuntimeError("APP_SECRET_KEY must not be empty")
    if IMAGE_QUALITY <= 0:
        raise RuntimeError("IMAGE_QUALITY must be between 1 and 100")


_validate_settings()


__all__ = [
    "ALLOWED_IMAGE_MIME_TYPES",
    "APP_SECRET_KEY",
    "AVATAR_FOLDER",
    "BASE_DIR",
    "CLOUDINARY_API_KEY",
    "CLOUDINARY_API_SECRET",
    "CLOUDINARY_CLOUD_NAME",
    "DB_CONNECT_TIMEOUT_SECONDS",
    "DB_DSN",
    "DB_POOL_SIZE",
    "GAME_IMAGE_FOLDER",
    "IMAGE_QUALITY",
    "IMAGE_SIZE",
    "LOG_DIR",
    "LOG_DIR_PATH",
    "LOG_FILE",
    "LOG_FILE_PATH",
    "MAX_UPLOAD_BYTES",
    "PORT",
    "RUN_DB_MIGRATIONS",
    "cloudinary_configured",
]
