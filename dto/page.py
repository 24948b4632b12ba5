from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field


class PageImage(BaseModel):
    """One rasterized page.  Immutable; discarded once the page is extracted."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    pixels: bytes
    mime_type: Literal["image/png"] = "image/png"
    width: int = 0
    height: int = 0


class RasterOutput(BaseModel):
    """Rasterized pages plus the document's true page count."""

    pages: List[PageImage] = []
    total_pages: int = 0
