"""
Extraction Service Interface

Turns free text, a photo of a till ticket or a voice message into
candidate figures. The engine only depends on this interface; how the
figures are read (LLM, OCR, speech-to-text) is the implementation's business.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union

from pydantic import BaseModel

from till_ledger.models.ledger import LedgerRecord, PartialRecord


class TextInput(BaseModel):
    text: str


class ImageInput(BaseModel):
    content: bytes
    mime_type: str = "image/jpeg"
    caption: Optional[str] = None


class AudioInput(BaseModel):
    content: bytes
    mime_type: str = "audio/ogg"
    duration_seconds: Optional[int] = None


ExtractionSource = Union[TextInput, ImageInput, AudioInput]


def source_name(source: ExtractionSource) -> str:
    """Short label for logs and audit events."""
    if isinstance(source, ImageInput):
        return "image"
    if isinstance(source, AudioInput):
        return "audio"
    return "text"


class ExtractionError(Exception):
    """The input could not be turned into figures."""
    pass


class ExtractionService(ABC):
    """Abstract interface for figure extraction."""

    @abstractmethod
    async def extract(
        self,
        source: ExtractionSource,
        existing: Optional[LedgerRecord] = None,
    ) -> PartialRecord:
        """
        Extract candidate figures.

        Args:
            source: Text, image or audio input
            existing: The in-progress record, so that a modification
                      returns only the fields the operator changed

        Returns:
            A PartialRecord; fields not mentioned are left as None

        Raises:
            ExtractionError: If the input cannot be interpreted
        """
        pass
