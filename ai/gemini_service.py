import logging
from typing import List, Optional

from google import genai
from google.genai import errors, types

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from ai.service import AIService

logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-2.0-flash"
_MAX_OUTPUT_TOKENS = 8192
_TEMPERATURE = 0.1

_MAX_RETRIES = 4
_MIN_WAIT_SECONDS = 2
_MAX_WAIT_SECONDS = 60

_RETRYABLE_EXCEPTIONS = (ConnectionError, errors.ServerError)

_retry_decorator = retry(
    retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
    stop=stop_after_attempt(_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=_MIN_WAIT_SECONDS, max=_MAX_WAIT_SECONDS),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class GeminiService(AIService):
    """AIService backed by the Google Gemini API."""

    def __init__(self, model: Optional[str] = None, timeout: Optional[float] = None):
        self._model = model or _DEFAULT_MODEL
        # reads GEMINI_API_KEY / GOOGLE_API_KEY from env
        if timeout:
            # HttpOptions.timeout is in milliseconds
            self._client = genai.Client(
                http_options=types.HttpOptions(timeout=int(timeout * 1000))
            )
        else:
            self._client = genai.Client()

    def _config(self, system_prompt: str = "") -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_prompt or None,
            temperature=_TEMPERATURE,
            max_output_tokens=_MAX_OUTPUT_TOKENS,
        )

    @_retry_decorator
    def get_decision_for_media(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str = "image/png",
        system_prompt: str = "",
    ) -> str:
        image_part = types.Part.from_bytes(data=image_bytes, mime_type=mime_type)
        response = self._client.models.generate_content(
            model=self._model,
            contents=[prompt, image_part],
            config=self._config(system_prompt),
        )
        return response.text or ""

    @_retry_decorator
    def get_decision_for_images(
        self,
        prompt: str,
        images: List[bytes],
        mime_type: str = "image/png",
    ) -> str:
        contents: List = [prompt]
        contents.extend(types.Part.from_bytes(data=img, mime_type=mime_type) for img in images)
        response = self._client.models.generate_content(
            model=self._model,
            contents=contents,
            config=self._config(),
        )
        return response.text or ""
