from __future__ import annotations
"""
Oracle client: one chat-completion call per invocation, raw text back.

Two transports share the same wire format ({model?, messages, temperature, max_tokens}
in, {choices: [{message: {content}}]} out):
- OpenAITransport talks to the chat API directly with the openai SDK (needs the credential).
- ProxyTransport posts to the relay in proxy.py, which holds the credential server-side.

No retries and no caching: a failure is raised to the game, which shows it to the player.
"""
import logging
import time
from typing import Any, Dict, List, Optional, Protocol

import httpx
import openai
from openai import AsyncOpenAI

from .config import SETTINGS, Settings
from .errors import ConfigurationError, OracleError, TransportError, UpstreamError

log = logging.getLogger("llm_client")

Messages = List[Dict[str, str]]


class Transport(Protocol):
    async def complete(self, messages: Messages) -> Dict[str, Any]:
        """Send one chat request and return the decoded response payload."""
        ...

    async def aclose(self) -> None:
        ...


def _status_error_message(exc: openai.APIStatusError) -> str:
    body = exc.body
    if isinstance(body, dict):
        msg = body.get("message")
        if not msg and isinstance(body.get("error"), dict):
            msg = body["error"].get("message")
        if isinstance(msg, str) and msg:
            return msg
    return "Unknown error"


class OpenAITransport:
    """Direct calls to an OpenAI-compatible endpoint."""

    def __init__(self, api_key: str, base_url: str, model: str, temperature: float = 0.8, max_tokens: int = 1000,
                 client: Optional[AsyncOpenAI] = None):
        if not api_key:
            raise ConfigurationError(
                "API key is missing. Set TURTLE_SOUP_OPENAI_API_KEY (or OPENAI_API_KEY) in your environment or .env"
            )
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def complete(self, messages: Messages) -> Dict[str, Any]:
        try:
            rsp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise UpstreamError(_status_error_message(e), status=e.status_code) from e
        except openai.APIConnectionError as e:
            raise TransportError(f"Could not reach the chat API: {e}") from e
        except openai.OpenAIError as e:
            raise OracleError(f"Chat API call failed: {e}") from e
        return rsp.model_dump()

    async def aclose(self) -> None:
        await self.client.close()


class ProxyTransport:
    """Calls through the server-side relay; the model is fixed by the relay."""

    def __init__(self, url: str, temperature: float = 0.8, max_tokens: int = 1000,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.client = client or httpx.AsyncClient()

    async def complete(self, messages: Messages) -> Dict[str, Any]:
        payload = {"messages": messages, "temperature": self.temperature, "max_tokens": self.max_tokens}
        try:
            rsp = await self.client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach the proxy at {self.url}: {e}") from e
        try:
            data = rsp.json()
        except ValueError:
            data = None
        if not rsp.is_success:
            msg = data.get("error") if isinstance(data, dict) else None
            raise UpstreamError(msg or "Unknown error", status=rsp.status_code)
        if not isinstance(data, dict):
            raise OracleError("Proxy returned a non-JSON body.", status=rsp.status_code)
        return data

    async def aclose(self) -> None:
        await self.client.aclose()


def _extract_text(payload: Dict[str, Any]) -> Optional[str]:
    """Return choices[0].message.content; list-of-parts content is joined."""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0] if isinstance(choices[0], dict) else {}
    msg = first.get("message") or {}
    content = msg.get("content") if isinstance(msg, dict) else None
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [c["text"] for c in content if isinstance(c, dict) and isinstance(c.get("text"), str)]
        return "\n".join(parts)
    return ""


class OracleClient:
    def __init__(self, transport: Transport, verbose: bool = False):
        self.transport = transport
        self.verbose = verbose

    @classmethod
    def from_settings(cls, settings: Settings = SETTINGS) -> "OracleClient":
        """Proxy transport when a proxy URL is configured, otherwise the direct API."""
        if settings.proxy_url:
            transport: Transport = ProxyTransport(
                settings.proxy_url, temperature=settings.temperature, max_tokens=settings.max_tokens,
            )
        else:
            transport = OpenAITransport(
                api_key=settings.openai_api_key,
                base_url=settings.api_base,
                model=settings.model,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
            )
        return cls(transport, verbose=settings.verbose_llm)

    async def aclose(self) -> None:
        """Release the transport's HTTP connections."""
        await self.transport.aclose()

    async def invoke(self, user_prompt: str, system_prompt: str = "") -> str:
        """Send one prompt (plus optional system instruction) and return the raw reply text."""
        messages: Messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        t0 = time.time()
        try:
            payload = await self.transport.complete(messages)
        except OracleError as e:
            log.warning("Oracle call failed status=%s: %s", e.status, e.message)
            raise
        ms = int((time.time() - t0) * 1000)

        text = _extract_text(payload)
        if text is None:
            log.error("Oracle response had no choices: %s", payload)
            raise OracleError("API returned no choices.")
        if self.verbose:
            log.info("Oracle reply (%d ms): %s", ms, text.replace("\n", " "))
        else:
            log.debug("Oracle reply in %d ms (%d chars)", ms, len(text))
        return text
