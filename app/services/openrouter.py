"""Integration helpers for the OpenRouter API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class OpenRouterClient:
    """Client responsible for talking to OpenRouter's /chat/completions endpoint."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str,
        model: str | None = None,
        temperature: float = 0.4,
        max_tokens: int = 800,
    ) -> str:
        """Send a single-turn chat completion and return the reply text verbatim."""

        api_key = self._settings.openrouter_api_key
        if not api_key:
            raise UpstreamUnavailable("The assistant is not configured")

        payload = {
            "model": model or self._settings.openrouter_model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "X-Title": self._settings.app_name,
        }

        try:
            response = await self._client.post(
                "/chat/completions", json=payload, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning("OpenRouter request failed: %s", exc)
            raise UpstreamUnavailable("The assistant could not be reached") from exc

        if response.status_code >= 400:
            logger.warning(
                "OpenRouter responded with %s: %s",
                response.status_code,
                response.text[:200],
            )
            raise UpstreamUnavailable(
                f"The assistant failed with status {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable("The assistant returned invalid JSON") from exc

        content = self._extract_content(data)
        if content is None:
            raise UpstreamUnavailable("The assistant returned no message")
        return content

    @staticmethod
    def _extract_content(data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        if not isinstance(first, dict):
            return None
        message = first.get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            return None
        return content
