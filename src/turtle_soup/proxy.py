"""
Chat-completion relay that keeps the API credential server-side.

Endpoints:
- POST    /api/chat  -> forward {messages, temperature?, max_tokens?} with the configured model
- OPTIONS /api/chat  -> CORS preflight (200, empty body)
- other methods      -> 405 {"error": "Method not allowed"}

Upstream failures are relayed with the upstream status and {"error": <message>}.
The relay holds no game state; every request is independent.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Callable, Optional

import openai
from flask import Flask, jsonify, request
from openai import OpenAI

from . import config
from .config import Settings

log = logging.getLogger("proxy")

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
DEFAULT_TEMPERATURE = 0.8
DEFAULT_MAX_TOKENS = 1000

ClientFactory = Callable[[str, str], OpenAI]


@lru_cache(maxsize=4)
def get_client(api_key: str, base_url: str) -> OpenAI:
    return OpenAI(api_key=api_key, base_url=base_url or None)


def _upstream_error_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        msg = body.get("message")
        if not msg and isinstance(body.get("error"), dict):
            msg = body["error"].get("message")
        if isinstance(msg, str) and msg:
            return msg
    return "OpenAI API error"


def create_app(settings: Optional[Settings] = None, client_factory: Optional[ClientFactory] = None) -> Flask:
    """Build the relay. Settings default to the module-level SETTINGS, read per request."""
    app = Flask(__name__)
    make_client = client_factory or get_client

    def _settings() -> Settings:
        return settings or config.SETTINGS

    @app.route("/api/chat", methods=ALL_METHODS)
    def chat():
        if request.method == "OPTIONS":
            return "", 200
        if request.method != "POST":
            return jsonify({"error": "Method not allowed"}), 405

        cfg = _settings()
        if not cfg.openai_api_key:
            log.error("Rejecting chat request: API key not configured")
            return jsonify({"error": "API key not configured"}), 500

        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        messages = data.get("messages")
        if not isinstance(messages, list):
            return jsonify({"error": "messages must be a list"}), 400
        temperature = data.get("temperature", DEFAULT_TEMPERATURE)
        max_tokens = data.get("max_tokens", DEFAULT_MAX_TOKENS)

        try:
            client = make_client(cfg.openai_api_key, cfg.api_base)
            rsp = client.chat.completions.create(
                model=cfg.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIStatusError as e:
            log.warning("Upstream returned %s", e.status_code)
            return jsonify({"error": _upstream_error_message(e)}), e.status_code
        except Exception:
            log.exception("API Error")
            return jsonify({"error": "Internal server error"}), 500
        return jsonify(rsp.model_dump(exclude_unset=True)), 200

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    return app
