"""
Configuration and environment loading for Turtle Soup.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- .env is loaded first so local credentials behave like real environment variables.
- Exposes SETTINGS with keys used across the project (credential, endpoint, proxy, tuning knobs).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")

DIFFICULTIES = ("easy", "normal", "hard")
LANGUAGES = ("ja", "en")


def _repo_root() -> str:
    # this file: src/turtle_soup/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.warning("Ignoring unreadable settings file %s", path, exc_info=True)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring settings file %s: top level is not a mapping", path)
        return {}
    return data


def _as_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible chat completions)
    openai_api_key: str
    api_base: str
    model: str

    # Optional proxy; when set the client never needs the credential
    proxy_url: str

    # Request knobs
    temperature: float
    max_tokens: int

    # Game defaults
    language: str
    difficulty: str
    verbose_llm: bool

    # Proxy server binding
    proxy_host: str
    proxy_port: int


def load_settings(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Resolve settings with precedence: YAML file -> environment -> defaults."""
    cfg = _load_yaml(path or os.path.join(_repo_root(), "settings.yml"))
    env = os.environ if environ is None else environ

    def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
        if name in cfg and cfg[name] is not None:
            val = cfg[name]
            return cast(val) if cast else val
        val = env.get(name)
        if val is not None:
            return cast(val) if cast else val
        return default

    language = str(_get("TURTLE_SOUP_LANGUAGE", "ja")).lower()
    if language not in LANGUAGES:
        raise ValueError(f"Unsupported language {language!r}; expected one of {', '.join(LANGUAGES)}")
    difficulty = str(_get("TURTLE_SOUP_DIFFICULTY", "easy")).lower()
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unsupported difficulty {difficulty!r}; expected one of {', '.join(DIFFICULTIES)}")

    return Settings(
        openai_api_key=_get("TURTLE_SOUP_OPENAI_API_KEY", _get("OPENAI_API_KEY", "")),
        api_base=_get("TURTLE_SOUP_API_BASE", _get("OPENAI_BASE_URL", "https://api.openai.com/v1")),
        model=_get("TURTLE_SOUP_MODEL", "gpt-4o"),
        proxy_url=_get("TURTLE_SOUP_PROXY_URL", ""),
        temperature=float(_get("TURTLE_SOUP_TEMPERATURE", 0.8, cast=float)),
        max_tokens=int(_get("TURTLE_SOUP_MAX_TOKENS", 1000, cast=int)),
        language=language,
        difficulty=difficulty,
        verbose_llm=bool(_get("TURTLE_SOUP_VERBOSE_LLM", False, cast=_as_bool)),
        proxy_host=_get("TURTLE_SOUP_PROXY_HOST", "0.0.0.0"),
        proxy_port=int(_get("TURTLE_SOUP_PROXY_PORT", 8000, cast=int)),
    )


SETTINGS = load_settings()
