"""
Minimal Flask server for the Turtle Soup chat relay.

Endpoints:
- POST /api/chat -> forward a chat-completion request with the server-held API key

Configure the key with TURTLE_SOUP_OPENAI_API_KEY (or OPENAI_API_KEY) in the environment,
.env, or settings.yml. Point the game at it with TURTLE_SOUP_PROXY_URL=http://<host>:<port>/api/chat.
"""
from __future__ import annotations

import logging
import os

from src.turtle_soup.config import SETTINGS
from src.turtle_soup.proxy import create_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

app = create_app()

if not SETTINGS.openai_api_key:
    logging.warning("No API key configured; /api/chat will answer 500 until one is set")


if __name__ == "__main__":
    app.run(host=SETTINGS.proxy_host, port=SETTINGS.proxy_port, debug=os.environ.get("FLASK_DEBUG") == "1")
