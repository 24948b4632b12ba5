from typing import Dict, List, Literal, Optional

from pydantic import field_validator

from dto.base import CamelModel


class OutputPreferences(CamelModel):
    combine_related_tables: bool = False
    output_language: Literal["auto", "english", "swedish", "german", "spanish", "french"] = "auto"
    skip_diagrams: bool = False
    skip_images: bool = False
    symbol_mapping: Dict[str, str] = {}


class Guidance(CamelModel):
    """User-approved answers and preferences collected after an analysis."""

    answers: Dict[str, str] = {}
    accepted_suggestions: List[str] = []
    freeform_instructions: Optional[str] = None
    output_preferences: Optional[OutputPreferences] = None

    @field_validator("accepted_suggestions")
    @classmethod
    def _unique(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))
