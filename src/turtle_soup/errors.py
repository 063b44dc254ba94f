"""Error taxonomy shared by the oracle client, response parser and game."""
from __future__ import annotations

from typing import Optional


class TurtleSoupError(Exception):
    """Base class for every failure a game action surfaces to the player."""


class ConfigurationError(TurtleSoupError):
    """The oracle cannot be used because required configuration is missing."""


class OracleError(TurtleSoupError):
    """The chat-completion call failed or returned nothing usable."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status = status


class TransportError(OracleError):
    """The chat API (or the proxy in front of it) could not be reached."""


class UpstreamError(OracleError):
    """The chat API answered with a non-success HTTP status."""

    def __str__(self) -> str:
        return f"API Error: {self.status} - {self.message}"


class MalformedResponseError(TurtleSoupError):
    """The oracle reply held no parseable JSON object or the wrong shape."""
