"""Service-level routes."""
from __future__ import annotations

from flask import Blueprint

web_blueprint = Blueprint("web", __name__)


@web_blueprint.route("/")
def index():
    return "Game store API is running"
