from abc import ABC, abstractmethod
from typing import List


class AIService(ABC):
    """
    Base class for vision-capable AI services.

    Subclasses must implement both of:
      - get_decision_for_media   (one image + prompt → text response)
      - get_decision_for_images  (several images + prompt → text response)
    """

    @abstractmethod
    def get_decision_for_media(
        self,
        prompt: str,
        image_bytes: bytes,
        mime_type: str = "image/png",
        system_prompt: str = "",
    ) -> str:
        """Send an image together with a text prompt and return the LLM response."""
        ...

    @abstractmethod
    def get_decision_for_images(
        self,
        prompt: str,
        images: List[bytes],
        mime_type: str = "image/png",
    ) -> str:
        """Send several images, in order, with one prompt and return the response."""
        ...
