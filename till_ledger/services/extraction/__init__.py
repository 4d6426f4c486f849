"""Figure extraction services package."""

from till_ledger.services.extraction.interface import (
    AudioInput,
    ExtractionError,
    ExtractionService,
    ExtractionSource,
    ImageInput,
    TextInput,
    source_name,
)
from till_ledger.services.extraction.gemini_service import (
    GeminiExtractionService,
    parse_response,
)

__all__ = [
    "AudioInput",
    "ExtractionError",
    "ExtractionService",
    "ExtractionSource",
    "GeminiExtractionService",
    "ImageInput",
    "TextInput",
    "parse_response",
    "source_name",
]
