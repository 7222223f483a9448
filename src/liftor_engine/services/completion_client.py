"""
Service for chat-completion API interactions.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import SETTINGS
from ..results import Failure, NetworkError, Ok, Timeout


def _extract_text(body: Any) -> str | None:
    """Read ``completion`` or ``choices[0].message.content`` from a response body."""
    if not isinstance(body, dict):
        return None
    completion = body.get("completion")
    if isinstance(completion, str):
        return completion
    choices = body.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            return content
    return None


class CompletionClient:
    """One request per call; retry policy belongs to the caller."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url or SETTINGS.COMPLETION_API_URL
        self.api_key = api_key if api_key is not None else SETTINGS.COMPLETION_API_KEY
        self.model = model or SETTINGS.COMPLETION_MODEL
        self.timeout = timeout if timeout is not None else SETTINGS.COMPLETION_TIMEOUT_SECONDS
        self._transport = transport

    async def complete(self, system: str, user: str) -> Ok[str] | Failure:
        """
        Send a system/user message pair and return the completion text.

        Args:
            system: System message content
            user: User message content

        Returns:
            ``Ok(text)``, ``NetworkError`` or ``Timeout``. Cancellation propagates.
        """
        if not self.api_key:
            logging.info("Completion API key not configured")
            return NetworkError("completion API key not configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            logging.warning("Completion request timed out after %.0fs: %s", self.timeout, e)
            return Timeout(f"no response within {self.timeout:g}s")
        except httpx.HTTPStatusError as e:
            logging.error(
                "Completion HTTP error: %s - %s", e.response.status_code, e.response.text[:200]
            )
            status = e.response.status_code
            return NetworkError(f"HTTP {status}", status_code=status)
        except httpx.HTTPError as e:
            logging.warning("Completion HTTP request failed: %s", e)
            return NetworkError(str(e) or type(e).__name__)
        except ValueError as e:
            logging.warning("Completion response body is not JSON: %s", e)
            return NetworkError("undecodable response body", status_code=response.status_code)

        text = _extract_text(body)
        if text is None:
            logging.warning("Unexpected completion response format")
            return NetworkError("response has no completion text", status_code=response.status_code)
        logging.info("Completion received: %d characters", len(text))
        return Ok(text)
