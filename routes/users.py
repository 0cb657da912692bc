"""User registration, login and profile routes."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from flask import Blueprint, jsonify, request

from records import users as users_records
from routes.api_utils import (
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    handle_api_errors,
)
from routes.uploads import ingest_image, read_upload

users_blueprint = Blueprint("users", __name__)

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Provide shared state required by the user endpoints."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"users routes missing context value: {key}")
    return _context[key]


def _get_db():
    getter: Callable[[], Any] = _ctx("get_db")
    return getter()


def _store_avatar() -> str | None:
    data = read_upload(
        request.files.get("avatar"),
        max_bytes=_ctx("max_upload_bytes"),
        allowed_mime_types=_ctx("allowed_mime_types"),
    )
    if data is None:
        return None
    return ingest_image(
        data,
        _ctx("avatar_folder"),
        normalize=_ctx("normalize_image"),
        image_store=_ctx("image_store"),
    )


@users_blueprint.route("/users")
@handle_api_errors
def list_users():
    return jsonify(users_records.list_users(_get_db()))


@users_blueprint.route("/users/<int:uid>")
@handle_api_errors
def get_user(uid: int):
    user = users_records.get_user(_get_db(), uid)
    if user is None:
        raise NotFoundError("User not found")
    return jsonify(user)


@users_blueprint.route("/register/user", methods=["POST"])
@handle_api_errors
def register_user():
    email = request.form.get("email")
    username = request.form.get("username")
    password = request.form.get("password")
    if not email or not username or not password:
        raise ValidationError("email, username, and password are required")

    imagepro = _store_avatar()
    uid = users_records.create_user(
        _get_db(),
        username=username,
        email=email,
        password=password,
        imagepro=imagepro,
    )
    return jsonify({
        "message": "User registered successfully",
        "uid": uid,
        "imagepro": imagepro,
    }), 201


@users_blueprint.route("/login", methods=["POST"])
@handle_api_errors
def login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = request.form
    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        raise ValidationError("username and password are required")

    user = users_records.find_by_username(_get_db(), username)
    # Stored passwords are cleartext and compared as-is.
    if user is None or user["password"] != password:
        raise UnauthorizedError("Invalid username or password")

    return jsonify({
        "message": "Login successful",
        "user": {
            "uid": user["uid"],
            "username": user["username"],
            "email": user["email"],
            "imagepro": user["imagepro"],
            "role": user["role"],
        },
    })


@users_blueprint.route("/users/update", methods=["POST"])
@handle_api_errors
def update_user():
    uid = request.form.get("uid")
    if not uid:
        raise ValidationError("uid is required")

    # The avatar is stored before the row lookup; an unknown uid leaves it orphaned remotely.
    imagepro = _store_avatar()
    merged = users_records.update_user(
        _get_db(),
        uid,
        {"username": request.form.get("username"), "imagepro": imagepro},
    )
    return jsonify({"message": "User updated successfully", "user": merged})
