"""
AIService implementation backed by the Anthropic Claude API.

Supports:
  - One image + text     (get_decision_for_media)
  - Several images + text (get_decision_for_images) - used when sampled
    pages of a document are analysed together.

Images (png, jpeg, gif, webp) are sent as base64 image content blocks.
Any other media type is rejected with ValueError before a request is made.

Reads ANTHROPIC_API_KEY from the environment.
Default model: claude-sonnet-4-5

Retries transient errors (rate-limit, overloaded, connection, timeout)
with exponential backoff via tenacity.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional

from anthropic import (
    Anthropic,
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from ai.service import AIService

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "claude-sonnet-4-5"
_MAX_TOKENS = 16384
_TEMPERATURE = 0.1

# Retry configuration
_MAX_RETRIES = 4
_MIN_WAIT_SECONDS = 2
_MAX_WAIT_SECONDS = 60

# Transient exception types that should trigger a retry.
_RETRYABLE_EXCEPTIONS = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)

_retry_decorator = retry(
    retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
    stop=stop_after_attempt(_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=_MIN_WAIT_SECONDS, max=_MAX_WAIT_SECONDS),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)

# MIME types that Claude accepts as image content blocks.
_IMAGE_MIMES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/webp",
    }
)


def _image_block(image_bytes: bytes, mime_type: str) -> Dict[str, Any]:
    if mime_type not in _IMAGE_MIMES:
        raise ValueError(f"Unsupported image media type for Claude: {mime_type}")
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": mime_type,
            "data": base64.standard_b64encode(image_bytes).decode("ascii"),
        },
    }


class ClaudeService(AIService):
    """AIService backed by the Anthropic Claude API."""

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        self._model = model or _DEFAULT_MODEL
        # reads ANTHROPIC_API_KEY from env
        self._client = Anthropic(timeout=timeout) if timeout else Anthropic()

    def _create(self, content: List[Dict[str, Any]], system_prompt: str = "") -> str:
        kwargs: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": _MAX_TOKENS,
            "temperature": _TEMPERATURE,
            "messages": [{"role": "user", "content": content}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        message = self._client.messages.create(**kwargs)
        return message.content[0].text if message.content else ""

    @_retry_decorator
    def get_decision_for_media(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str = "image/png",
        system_prompt: str = "",
    ) -> str:
        content = [
            _image_block(image_bytes, mime_type),
            {"type": "text", "text": prompt},
        ]
        return self._create(content, system_prompt=system_prompt)

    @_retry_decorator
    def get_decision_for_images(
        self,
        prompt: str,
        images: List[bytes],
        mime_type: str = "image/png",
    ) -> str:
        content: List[Dict[str, Any]] = [_image_block(img, mime_type) for img in images]
        content.append({"type": "text", "text": prompt})
        return self._create(content)
