from ai.service import AIService
from ai.factory import (
    ServiceNotConfiguredError,
    get_decision_for_media_service,
    is_configured,
)
from ai.response_parser import parse_llm_json, strip_code_fences

__all__ = [
    "AIService",
    "ServiceNotConfiguredError",
    "get_decision_for_media_service",
    "is_configured",
    "parse_llm_json",
    "strip_code_fences",
]
