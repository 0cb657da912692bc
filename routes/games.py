"""Game catalogue API routes."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from flask import Blueprint, jsonify, request

from records import games as games_records
from records.merge import is_truthy_numeric
from routes.api_utils import (
    NotFoundError,
    ValidationError,
    handle_api_errors,
)
from routes.uploads import has_upload, ingest_image, read_upload

games_blueprint = Blueprint("games", __name__)

_context: dict[str, Any] = {}


def configure(context: Mapping[str, Any]) -> None:
    """Provide shared state required by the game endpoints."""
    _context.update(context)


def _ctx(key: str) -> Any:
    if key not in _context:
        raise RuntimeError(f"games routes missing context value: {key}")
    return _context[key]


def _get_db():
    getter: Callable[[], Any] = _ctx("get_db")
    return getter()


def _read_game_image() -> bytes | None:
    return read_upload(
        request.files.get("image"),
        max_bytes=_ctx("max_upload_bytes"),
        allowed_mime_types=_ctx("allowed_mime_types"),
    )


def _store_game_image(data: bytes) -> str:
    return ingest_image(
        data,
        _ctx("game_image_folder"),
        normalize=_ctx("normalize_image"),
        image_store=_ctx("image_store"),
    )


@games_blueprint.route("/games")
@handle_api_errors
def list_games():
    return jsonify(games_records.list_games(_get_db()))


@games_blueprint.route("/games/<int:game_id>")
@handle_api_errors
def get_game(game_id: int):
    game = games_records.get_game(_get_db(), game_id)
    if game is None:
        raise NotFoundError("Game not found")
    return jsonify(game)


@games_blueprint.route("/games", methods=["POST"])
@handle_api_errors
def create_game():
    form = request.form
    name = form.get("name")
    price = form.get("price")
    category_id = form.get("category_id")
    if not (name and is_truthy_numeric(price) and is_truthy_numeric(category_id)):
        raise ValidationError("name, price, and category_id are required")
    if not has_upload(request.files.get("image")):
        raise ValidationError("image is required")

    image_url = _store_game_image(_read_game_image())
    game_id = games_records.create_game(
        _get_db(),
        name=name,
        description=form.get("description"),
        price=price,
        category_id=category_id,
        image_url=image_url,
    )
    return jsonify({
        "message": "Game created successfully",
        "game_id": game_id,
        "image_url": image_url,
    }), 201


@games_blueprint.route("/games/update", methods=["POST"])
@handle_api_errors
def update_game():
    form = request.form
    game_id = form.get("game_id")
    if not game_id:
        raise ValidationError("game_id is required")

    # The image is stored before the row lookup; an unknown game_id leaves it orphaned remotely.
    data = _read_game_image()
    image_url = _store_game_image(data) if data is not None else None
    merged = games_records.update_game(
        _get_db(),
        game_id,
        {
            "name": form.get("name"),
            "description": form.get("description"),
            "price": form.get("price"),
            "category_id": form.get("category_id"),
            "image_url": image_url,
        },
    )
    return jsonify({"message": "Game updated successfully", "game": merged})


@games_blueprint.route("/games/<int:game_id>", methods=["DELETE"])
@handle_api_errors
def delete_game(game_id: int):
    if not games_records.delete_game(_get_db(), game_id):
        raise NotFoundError("Game not found or already deleted")
    return jsonify({"message": "Game deleted successfully"})
