"""WSGI entrypoint for the game store API."""
from __future__ import annotations

from config import PORT
from web.app_factory import create_app

app = create_app()


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=PORT, debug=True)
