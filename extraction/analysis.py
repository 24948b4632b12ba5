"""
Pre-extraction analysis.

Rasterizes a small, spread-out sample of pages, shows them to the model in
one request and turns the answer into a DocumentAnalysis: document type,
languages, complexity, clarifying questions and suggestions.  The user's
answers come back as a Guidance for a guided extraction.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from dto.analysis import (
    AnalysisResult,
    AnalysisStatus,
    DocumentAnalysis,
    Question,
    Suggestion,
    UncertainPattern,
)
from dto.result import ErrorCode
from extraction.client import ExtractionClient
from extraction.config import ExtractionConfig
from extraction.errors import ExtractionError
from extraction.prompts.analysis import get_analysis_prompt
from extraction.rasterizer import Rasterizer

logger = logging.getLogger(__name__)

MAX_SAMPLED_PAGES = 5

_CATEGORIES = ("symbols", "structure", "content", "output")
_COMPLEXITIES = ("low", "medium", "high")


def sample_pages(total_pages: int, max_samples: int = MAX_SAMPLED_PAGES) -> List[int]:
    """
    Representative 1-based pages: first, middle and last, plus the
    quartiles for long documents.  Sorted, unique, at most *max_samples*
    (the tail is dropped; page 1 is always kept).
    """
    if total_pages <= 0 or max_samples <= 0:
        return []

    pages = {1}
    if total_pages == 2:
        pages.add(2)
    if total_pages >= 3:
        pages.add(math.ceil(total_pages / 2))
        pages.add(total_pages)
    if total_pages >= 10:
        pages.add(math.ceil(total_pages * 0.25))
        pages.add(math.ceil(total_pages * 0.75))

    return sorted(pages)[:max_samples]


class AnalysisEngine:

    def __init__(
        self,
        rasterizer: Rasterizer,
        client: ExtractionClient,
        config: ExtractionConfig,
    ) -> None:
        self._rasterizer = rasterizer
        self._client = client
        self._config = config

    def analyze(
        self,
        document: bytes,
        file_name: str = "document",
        *,
        cancel: Optional[threading.Event] = None,
    ) -> AnalysisResult:
        """
        Returns ``failed`` when the document cannot be rasterized and
        ``unavailable`` when the model call or its answer is unusable; in
        the latter case callers should go straight to extraction.
        """
        logger.info("  [Analysis] Analysing %s", file_name)

        try:
            total = self._rasterizer.page_count(document)
            sample = sample_pages(total)
            if not sample:
                raise ExtractionError(ErrorCode.PDF_CONVERSION_FAILED, "Document has no pages")
            raster = self._rasterizer.rasterize(
                document, max_pages=max(sample), page_numbers=sample
            )
            if all(p.page_number != 1 for p in raster.pages):
                raise ExtractionError(
                    ErrorCode.PDF_CONVERSION_FAILED, "The first page could not be rendered"
                )
        except ExtractionError as exc:
            logger.warning("  [Analysis] Rasterization failed: %s", exc)
            return AnalysisResult(
                status=AnalysisStatus.FAILED,
                error=exc.message,
                error_code=exc.code.value,
            )

        page_numbers = [p.page_number for p in raster.pages]
        logger.info(
            "  [Analysis] Sampled page(s) %s of %d",
            ", ".join(str(n) for n in page_numbers),
            total,
        )

        try:
            payload = self._client.analyze(
                [p.pixels for p in raster.pages],
                get_analysis_prompt(file_name, page_numbers),
                timeout=self._config.analysis_timeout_seconds,
                cancel=cancel,
            )
        except ExtractionError as exc:
            logger.warning("  [Analysis] Model call failed: %s", exc)
            return AnalysisResult(
                status=AnalysisStatus.UNAVAILABLE,
                error=exc.message,
                error_code=exc.code.value,
            )

        analysis = parse_document_analysis(payload, total, page_numbers)
        if analysis is None:
            return AnalysisResult(
                status=AnalysisStatus.UNAVAILABLE,
                error="Analysis response could not be interpreted",
                error_code=ErrorCode.AI_PARSE_ERROR.value,
            )

        logger.info(
            "  [Analysis] %s: %d question(s), %d suggestion(s)",
            analysis.document_type,
            len(analysis.questions),
            len(analysis.suggestions),
        )
        return AnalysisResult(status=AnalysisStatus.READY, analysis=analysis)


# ---------------------------------------------------------------------------
# Payload → DocumentAnalysis
# ---------------------------------------------------------------------------

def parse_document_analysis(
    payload: Dict[str, Any],
    page_count: int,
    sampled_pages: List[int],
) -> Optional[DocumentAnalysis]:
    """
    Build a DocumentAnalysis from the model's JSON.  Accepts the
    ``{"analysis": {...}, "questions": [...]}`` envelope or a flat object;
    invalid list items are skipped.  ``page_count`` always reflects the
    real document, not the model's guess.
    """
    info = payload.get("analysis")
    if not isinstance(info, dict):
        info = payload

    questions: List[Question] = []
    for i, item in enumerate(_list(payload.get("questions"))):
        if not isinstance(item, dict):
            continue
        item = dict(item)
        item.setdefault("id", f"q{i + 1}")
        category = str(item.get("category", "content")).strip().lower()
        item["category"] = category if category in _CATEGORIES else "content"
        item["options"] = [str(o) for o in _list(item.get("options"))]
        if item.get("default") is not None:
            item["default"] = str(item["default"])
        try:
            questions.append(Question.model_validate(item))
        except ValidationError as exc:
            logger.warning("  [Analysis] Skipping invalid question %d: %s", i, exc)

    suggestions: List[Suggestion] = []
    for i, item in enumerate(_list(payload.get("suggestions"))):
        if not isinstance(item, dict):
            continue
        item = dict(item)
        item.setdefault("id", f"s{i + 1}")
        try:
            suggestions.append(Suggestion.model_validate(item))
        except ValidationError as exc:
            logger.warning("  [Analysis] Skipping invalid suggestion %d: %s", i, exc)

    patterns: List[UncertainPattern] = []
    for i, item in enumerate(_list(payload.get("uncertainPatterns", payload.get("uncertain_patterns")))):
        if not isinstance(item, dict):
            continue
        item = dict(item)
        pages = item.get("pagesDetected", item.get("pages_detected"))
        item.pop("pages_detected", None)
        item["pagesDetected"] = [p for p in _list(pages) if isinstance(p, int) and not isinstance(p, bool)]
        try:
            patterns.append(UncertainPattern.model_validate(item))
        except ValidationError as exc:
            logger.warning("  [Analysis] Skipping invalid pattern %d: %s", i, exc)

    warnings: List[str] = []
    for item in _list(payload.get("warnings")):
        if isinstance(item, dict):
            item = item.get("message", "")
        if item and str(item).strip():
            warnings.append(str(item).strip())

    complexity = str(info.get("complexity", "medium")).strip().lower()
    estimated = info.get("estimatedExtractionTime", info.get("estimated_extraction_time"))

    try:
        return DocumentAnalysis(
            document_type=str(info.get("documentType") or info.get("document_type") or "unknown"),
            page_count=page_count,
            tables_detected=_int(info.get("tablesDetected", info.get("tables_detected"))),
            languages=[str(lang) for lang in _list(info.get("languages")) if lang],
            complexity=complexity if complexity in _COMPLEXITIES else "medium",
            estimated_extraction_time=str(estimated) if estimated else None,
            questions=questions,
            suggestions=suggestions,
            warnings=warnings,
            uncertain_patterns=patterns,
            sampled_pages=sampled_pages,
        )
    except ValidationError as exc:
        logger.warning("  [Analysis] Invalid analysis payload: %s", exc)
        return None


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0
