import base64
import logging
from typing import Any, Dict, List, Optional

from openai import OpenAI, APIConnectionError, APITimeoutError, RateLimitError, InternalServerError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from ai.service import AIService

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gpt-4o"
_MAX_TOKENS = 8192
_TEMPERATURE = 0.1

_MAX_RETRIES = 4
_MIN_WAIT_SECONDS = 2
_MAX_WAIT_SECONDS = 60

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


def _image_part(image_bytes: bytes, mime_type: str) -> Dict[str, Any]:
    b64 = base64.b64encode(image_bytes).decode()
    return {
        "type": "image_url",
        "image_url": {"url": f"data:{mime_type};base64,{b64}", "detail": "high"},
    }


class OpenAIService(AIService):
    """AIService backed by the OpenAI chat completions API."""

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        self._model = model or _DEFAULT_MODEL
        # reads OPENAI_API_KEY (and OPENAI_BASE_URL, e.g. for OpenRouter) from env
        self._client = OpenAI(timeout=timeout) if timeout else OpenAI()

    def _complete(self, messages: List[Dict[str, Any]]) -> str:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            max_tokens=_MAX_TOKENS,
            temperature=_TEMPERATURE,
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    @_retry_decorator
    def get_decision_for_media(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str = "image/png",
        system_prompt: str = "",
    ) -> str:
        messages: List[Dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    _image_part(image_bytes, mime_type),
                ],
            }
        )
        return self._complete(messages)

    @_retry_decorator
    def get_decision_for_images(
        self,
        prompt: str,
        images: List[bytes],
        mime_type: str = "image/png",
    ) -> str:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        content.extend(_image_part(img, mime_type) for img in images)
        return self._complete([{"role": "user", "content": content}])
