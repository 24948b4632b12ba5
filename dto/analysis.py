"""
DTOs for the analysis phase.

An analysis looks at a few sampled pages, characterises the document and
returns clarifying questions / suggestions for the user.  The answers come
back as a ``Guidance`` (see dto.guidance).
"""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import field_validator

from dto.base import CamelModel


class Question(CamelModel):
    id: str
    category: Literal["symbols", "structure", "content", "output"] = "content"
    question: str
    options: List[str] = []
    context: str = ""
    default: Optional[str] = None


class Suggestion(CamelModel):
    id: str
    text: str
    action: str = ""


class UncertainPattern(CamelModel):
    pattern: str
    pages_detected: List[int] = []
    count: Optional[int] = None
    likely_meaning: str = ""


class DocumentAnalysis(CamelModel):
    document_type: str = "unknown"
    page_count: int = 0
    tables_detected: int = 0
    languages: List[str] = []
    complexity: Literal["low", "medium", "high"] = "medium"
    estimated_extraction_time: Optional[str] = None
    questions: List[Question] = []
    suggestions: List[Suggestion] = []
    warnings: List[str] = []
    uncertain_patterns: List[UncertainPattern] = []
    sampled_pages: List[int] = []

    @field_validator("languages")
    @classmethod
    def _dedupe_languages(cls, value: List[str]) -> List[str]:
        seen = set()
        out = []
        for lang in value:
            key = lang.strip().lower()
            if key and key not in seen:
                seen.add(key)
                out.append(lang.strip())
        return out


class AnalysisStatus(str, Enum):
    READY = "ready"
    # The model call failed; callers should go straight to extraction.
    UNAVAILABLE = "unavailable"
    # The document could not be rasterized at all.
    FAILED = "failed"


class AnalysisResult(CamelModel):
    status: AnalysisStatus
    analysis: Optional[DocumentAnalysis] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
