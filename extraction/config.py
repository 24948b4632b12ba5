"""
Runtime configuration for the extraction core.

Values come from keyword arguments or, via ``ExtractionConfig.from_env()``,
from ``EXTRACTION_*`` environment variables.  Provider selection and API
keys are read separately by ``ai.factory``.
"""

from __future__ import annotations

import os
from typing import Dict

from pydantic import BaseModel, Field

from extraction.repair import DEFAULT_MERGE_COLUMNS

_ENV_VARS: Dict[str, str] = {
    "max_pages": "EXTRACTION_MAX_PAGES",
    "dpi": "EXTRACTION_DPI",
    "max_image_side": "EXTRACTION_MAX_IMAGE_SIDE",
    "call_timeout_seconds": "EXTRACTION_CALL_TIMEOUT",
    "analysis_timeout_seconds": "EXTRACTION_ANALYSIS_TIMEOUT",
    "max_file_bytes": "EXTRACTION_MAX_FILE_BYTES",
    "merge_columns": "EXTRACTION_MERGE_COLUMNS",
    "unlimited": "EXTRACTION_UNLIMITED",
    "soffice_timeout_seconds": "EXTRACTION_SOFFICE_TIMEOUT",
}


class ExtractionConfig(BaseModel):
    max_pages: int = Field(default=10, ge=1)
    dpi: int = Field(default=150, ge=36, le=600)
    # Longest side of a page image, in pixels.
    max_image_side: int = Field(default=2400, ge=256)
    call_timeout_seconds: float = Field(default=90.0, gt=0)
    analysis_timeout_seconds: float = Field(default=60.0, gt=0)
    max_file_bytes: int = Field(default=20 * 1024 * 1024, ge=1)
    # How many leading columns the repairer back-fills from rows above.
    merge_columns: int = Field(default=DEFAULT_MERGE_COLUMNS, ge=0)
    # Lifts the page cap and the file-size limit.
    unlimited: bool = False
    soffice_timeout_seconds: float = Field(default=120.0, gt=0)

    @classmethod
    def from_env(cls) -> "ExtractionConfig":
        values = {}
        for field_name, env_name in _ENV_VARS.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        return cls(**values)
