"""OpenAI SDK wrapper for blocking chat completions."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    OpenAI,
    RateLimitError,
)

from ..config import ChatConfig
from ..models import Message

logger = logging.getLogger(__name__)

_CONNECT_TIMEOUT = 10.0


class RemoteError(Exception):
    """The completion service failed or answered with nothing usable."""


class ChatService:
    """One blocking ``complete()`` call per turn, no retries.

    Meant to run on a worker thread; the caller owns the deadline and
    cancellation, so nothing here waits on anything but the HTTP request.
    """

    def __init__(self, config: ChatConfig) -> None:
        self.config = config
        self._build_client()

    def _build_client(self) -> None:
        timeout = httpx.Timeout(float(self.config.timeout), connect=min(_CONNECT_TIMEOUT, float(self.config.timeout)))
        # SECURITY-REVIEW: verify=False only when the user sets verify_ssl: false
        http_client = httpx.Client(verify=self.config.verify_ssl, timeout=timeout)
        self.client = OpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            http_client=http_client,
            max_retries=0,
        )

    def complete(self, model: str, history: Sequence[Message]) -> str:
        """Send the whole history and return the trimmed reply text."""
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[m.to_openai() for m in history],
            )
        except AuthenticationError as e:
            logger.warning("Authentication failed: %s", e)
            raise RemoteError("authentication failed, check your OpenAI API key") from e
        except RateLimitError as e:
            raise RemoteError(f"rate limited by the completion service: {e.message}") from e
        except APITimeoutError as e:
            raise RemoteError("the completion service did not answer in time") from e
        except APIConnectionError as e:
            raise RemoteError(f"cannot reach the completion service: {e}") from e
        except APIStatusError as e:
            raise RemoteError(f"completion service returned HTTP {e.status_code}: {e.message}") from e
        except APIError as e:
            raise RemoteError(str(e)) from e

        if not response.choices:
            raise RemoteError("empty response")
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise RemoteError("empty response")
        return content
