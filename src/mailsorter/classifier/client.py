"""Classification service client.

This module provides a client for a chat-completions style API (Mistral,
OpenAI-compatible gateways). Each call sends a single user message and
returns the raw text of the first choice.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, Protocol

import structlog

from mailsorter.config import Settings
from mailsorter.exceptions import ClassifierError, ClassifierTimeoutError, ConfigurationError

logger = structlog.get_logger()


class ChatClient(Protocol):
    """Anything that turns one prompt into one raw text answer."""

    async def complete(self, prompt: str) -> str: ...


class ClassifierClient:
    """Chat-completions client used for classification and label matching.

    The client performs exactly one HTTP request per call and never retries;
    retry policy belongs to whoever invokes the enclosing operation.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the classifier client.

        Args:
            settings: Application settings. If None, uses default settings.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        from mailsorter.config import get_settings

        self.settings = settings or get_settings()
        if not self.settings.classifier_configured:
            raise ConfigurationError(
                "Classification service not configured. Set MAILSORTER_CLASSIFIER_API_KEY."
            )
        logger.info(
            "classifier_client_initialized",
            url=self.settings.classifier_api_url,
            model=self.settings.classifier_model,
        )

    def build_payload(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.settings.classifier_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.settings.classifier_temperature,
            "max_tokens": self.settings.classifier_max_tokens,
        }

    async def complete(self, prompt: str) -> str:
        """Send a prompt and return the first choice's message content.

        Args:
            prompt: The prompt to send to the model.

        Returns:
            Raw answer text.

        Raises:
            ClassifierTimeoutError: If the call exceeds classifier_timeout.
            ClassifierError: If the service is unreachable, answers non-2xx or
                returns an unexpected payload.
        """
        logger.debug("classifier_request", model=self.settings.classifier_model, prompt_length=len(prompt))
        return await asyncio.to_thread(self._complete_sync, prompt)

    def _complete_sync(self, prompt: str) -> str:
        req = urllib.request.Request(
            url=self.settings.classifier_api_url,
            data=json.dumps(self.build_payload(prompt)).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.settings.classifier_api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            method="POST",
        )

        timeout = self.settings.classifier_timeout
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:  # noqa: S310
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            logger.warning("classifier_request_failed", status=exc.code, error=str(exc))
            raise ClassifierError(f"Classification service answered {exc.code}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            if isinstance(exc.reason, TimeoutError):
                logger.warning("classifier_timeout", timeout=timeout)
                raise ClassifierTimeoutError(f"Classification service timed out: {exc.reason}") from exc
            logger.warning("classifier_request_failed", error=str(exc))
            raise ClassifierError(f"Failed to reach classification service: {exc.reason}") from exc
        except TimeoutError as exc:
            logger.warning("classifier_timeout", timeout=timeout)
            raise ClassifierTimeoutError(f"Classification service timed out: {exc}") from exc
        except OSError as exc:
            logger.warning("classifier_request_failed", error=str(exc))
            raise ClassifierError(f"Failed to reach classification service: {exc}") from exc

        try:
            data = json.loads(raw)
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise ClassifierError(f"Unexpected response format from classification service: {exc}") from exc

        return str(content or "")
