from enum import Enum
from typing import Optional

from dto.base import CamelModel


class WarningType(str, Enum):
    LOW_RESOLUTION = "low_resolution"
    MERGED_CELLS = "merged_cells"
    HANDWRITING = "handwriting"
    SKEWED = "skewed"
    PARTIAL_TABLE = "partial_table"
    MIXED_LANGUAGES = "mixed_languages"
    INCONSISTENT_FORMAT = "inconsistent_format"
    SKIPPED_CONTENT = "skipped_content"
    SPECIAL_CHARS_UNCERTAIN = "special_chars_uncertain"
    STRUCTURE_AMBIGUOUS = "structure_ambiguous"


class ExtractionWarning(CamelModel):
    """A user-facing note about something the extraction may have got wrong."""

    type: WarningType
    message: str
    page_number: Optional[int] = None
    suggestion: str = ""
