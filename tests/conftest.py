"""
Shared fixtures: a scripted vision model, a fake rasterizer and small
PNG / PDF documents.  Nothing here touches the network.
"""

import io
import json
from typing import Any, Callable, Iterable, List, Optional, Union

import fitz
import pytest
from PIL import Image

from ai.service import AIService
from dto.page import PageImage, RasterOutput
from dto.result import ErrorCode
from extraction.client import ExtractionClient
from extraction.config import ExtractionConfig
from extraction.errors import ExtractionError
from extraction.orchestrator import ExtractionOrchestrator

_PROVIDER_ENV = (
    "AI_MEDIA_PROVIDER",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "OPENAI_MODEL",
    "ANTHROPIC_MODEL",
    "GEMINI_MODEL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """No test may pick up real credentials or EXTRACTION_* overrides."""
    for name in _PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)
    for name in (
        "EXTRACTION_MAX_PAGES",
        "EXTRACTION_DPI",
        "EXTRACTION_MAX_IMAGE_SIDE",
        "EXTRACTION_CALL_TIMEOUT",
        "EXTRACTION_ANALYSIS_TIMEOUT",
        "EXTRACTION_MAX_FILE_BYTES",
        "EXTRACTION_MERGE_COLUMNS",
        "EXTRACTION_UNLIMITED",
        "EXTRACTION_SOFFICE_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


# =============================================================================
# DOCUMENTS
# =============================================================================

def make_png(width: int = 40, height: int = 30, color: str = "white") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_pdf(pages: int = 1) -> bytes:
    doc = fitz.open()
    for i in range(1, pages + 1):
        page = doc.new_page(width=200, height=150)
        page.insert_text((20, 40), f"Page {i}")
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def pdf_factory() -> Callable[[int], bytes]:
    return make_pdf


# =============================================================================
# MODEL RESPONSES
# =============================================================================

def table(
    name: str,
    headers: List[str],
    rows: List[List[Any]],
    confidence: Any = 0.9,
    **extra: Any,
) -> dict:
    return {"sheetName": name, "headers": headers, "rows": rows, "confidence": confidence, **extra}


def response(*tables: dict, overall: Any = 0.9, **extra: Any) -> str:
    return json.dumps({"tables": list(tables), "warnings": [], "overallConfidence": overall, **extra})


EMPTY = response()


Scripted = Union[str, Exception, Callable[[], str]]


class FakeAIService(AIService):
    """Returns scripted responses in order and records every call."""

    def __init__(self, responses: Iterable[Scripted] = ()) -> None:
        self.responses: List[Scripted] = list(responses)
        self.calls: List[dict] = []

    def _next(self) -> str:
        if not self.responses:
            raise AssertionError("FakeAIService ran out of scripted responses")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item()
        return item

    def get_decision_for_media(self, prompt, image_bytes, mime_type="image/png", system_prompt=""):
        self.calls.append(
            {"prompt": prompt, "system_prompt": system_prompt, "images": [image_bytes], "mime_type": mime_type}
        )
        return self._next()

    def get_decision_for_images(self, prompt, images, mime_type="image/png"):
        self.calls.append(
            {"prompt": prompt, "system_prompt": "", "images": list(images), "mime_type": mime_type}
        )
        return self._next()


class FakeRasterizer:
    """Pretends to rasterize an n-page document into tiny PNGs."""

    def __init__(self, pages: int = 1, fail: Optional[ErrorCode] = None) -> None:
        self.pages = pages
        self.fail = fail
        self.requests: List[dict] = []

    def page_count(self, document: bytes) -> int:
        if self.fail is not None:
            raise ExtractionError(self.fail, "cannot open document")
        return self.pages

    def rasterize(self, document, max_pages=None, page_numbers=None) -> RasterOutput:
        self.requests.append({"max_pages": max_pages, "page_numbers": page_numbers})
        if self.fail is not None:
            raise ExtractionError(self.fail, "cannot open document")
        limit = self.pages if max_pages is None else min(self.pages, max_pages)
        wanted = range(1, limit + 1) if page_numbers is None else sorted(
            n for n in set(page_numbers) if 1 <= n <= limit
        )
        return RasterOutput(
            pages=[PageImage(page_number=n, pixels=make_png(), width=40, height=30) for n in wanted],
            total_pages=self.pages,
        )


@pytest.fixture
def fake_service() -> FakeAIService:
    return FakeAIService()


def make_orchestrator(
    responses: Iterable[Scripted] = (),
    pages: int = 1,
    fail: Optional[ErrorCode] = None,
    **config: Any,
):
    service = FakeAIService(responses)
    orchestrator = ExtractionOrchestrator(
        ExtractionConfig(**config),
        rasterizer=FakeRasterizer(pages, fail=fail),
        client=ExtractionClient(service),
    )
    return orchestrator, service
