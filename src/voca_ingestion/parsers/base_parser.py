"""
Abstract base parser for text extraction
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

from ..models.schemas import ExtractionResult


logger = logging.getLogger(__name__)


class BaseParser(ABC):
    """Abstract base class for format-specific parsers"""

    # Short handler name reported in ExtractionResult.handler
    name = "base"

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def parse(self, file_content: bytes, file_name: str) -> ExtractionResult:
        """
        Extract plain text from a file

        Args:
            file_content: Raw file bytes
            file_name: Name of the file (used for logging only)

        Returns:
            ExtractionResult: Extracted text with handler name and page count

        Raises:
            ParserException: If the file cannot be read
        """
        pass

    def _validate_content(self, content: Optional[str]) -> bool:
        """
        Check that the parser produced some text

        Args:
            content: Extracted text content

        Returns:
            bool: True if there is non-whitespace text
        """
        if not content:
            return False
        return bool(content.strip())

    def _create_result(self, content: str, page_count: Optional[int] = None) -> ExtractionResult:
        if not self._validate_content(content):
            self.logger.warning("Parser produced no text")
        return ExtractionResult(text=content or "", handler=self.name, page_count=page_count)
