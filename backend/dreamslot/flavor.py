"""Flavor text: short generated bedtime whispers attached to committed wins.

Purely decorative. Any failure returns a fixed fallback string; requests
are never retried and never hold up pull logic.
"""
import logging

import httpx

from dreamslot.config import settings
from dreamslot.logic.messages import (
    FLAVOR_FALLBACK_EMPTY,
    FLAVOR_FALLBACK_ERROR,
    FLAVOR_FALLBACK_NO_KEY,
)


logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "Generate a very short, poetic, and soothing sentence (maximum 20 words) "
    "to coax someone to sleep. The theme should be related to: \"{label}\". "
    "The tone should be sweet, warm, and comforting, like a lover whispering "
    "goodnight. Do not add quotation marks."
)


class FlavorTextService:
    """Async client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        api_base: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = settings.flavor_api_key if api_key is None else api_key
        self.model = model or settings.flavor_model
        self.api_base = (api_base or settings.flavor_api_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.flavor_timeout_seconds
        self._transport = transport

    def _url(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    def _payload(self, label: str) -> dict:
        return {
            "contents": [{"parts": [{"text": PROMPT_TEMPLATE.format(label=label)}]}],
            "generationConfig": {"temperature": settings.flavor_temperature},
        }

    async def whisper(self, label: str) -> str:
        """Return a generated whisper for an item label, or a fallback."""
        if not self.api_key:
            return FLAVOR_FALLBACK_NO_KEY

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self._url(),
                    params={"key": self.api_key},
                    json=self._payload(label),
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Flavor text request failed for %r: %s", label, e)
            return FLAVOR_FALLBACK_ERROR

        text = _extract_text(data)
        return text or FLAVOR_FALLBACK_EMPTY


def _extract_text(data: object) -> str:
    """Pull the first candidate's text out of a generateContent response."""
    if not isinstance(data, dict):
        return ""
    for candidate in data.get("candidates") or []:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts or []:
            text = part.get("text") if isinstance(part, dict) else None
            if isinstance(text, str) and text.strip():
                return text.strip()
    return ""


# Global instance
flavor_service = FlavorTextService()
