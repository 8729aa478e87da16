"""
Translation service: thin client over a LibreTranslate-compatible HTTP API.

Endpoints used:
- POST {base}/translate  {"q", "source", "target"} -> {"translatedText"}
- GET  {base}/languages  (availability check)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class TranslationError(RuntimeError):
    """Upstream translation API failed or returned no translation."""


class TranslationService:
    """
    Args:
        base_url: Translation API root URL.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests use `httpx.MockTransport`).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout or self._timeout,
            transport=self._transport,
        )

    async def translate(self, text: str, target_lang: str, source_lang: str = "auto") -> str:
        """
        Translate text; `source_lang="auto"` lets the API detect it.

        Raises:
            TranslationError: Network error, non-2xx response or missing
                `translatedText` in the response.
        """
        payload = {"q": text, "source": source_lang, "target": target_lang}
        try:
            async with self._client() as client:
                resp = await client.post("/translate", json=payload)
                resp.raise_for_status()
                data: Any = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Translation request failed: %r", exc)
            raise TranslationError(str(exc)) from exc

        translated = data.get("translatedText") if isinstance(data, dict) else None
        if not translated:
            error = data.get("error") if isinstance(data, dict) else data
            logger.error("Translation API error: %s", error)
            raise TranslationError(str(error))
        return str(translated)

    async def is_available(self) -> bool:
        try:
            async with self._client(timeout=2.0) as client:
                resp = await client.get("/languages")
        except httpx.HTTPError:
            return False
        return resp.is_success
