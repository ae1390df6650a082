"""
DOCX parser using MarkItDown
"""
import os
import tempfile
import logging

from markitdown import MarkItDown

from .base_parser import BaseParser
from ..models.schemas import ExtractionResult
from ..exceptions import ParserException
from ..processors.text_cleaner import TextCleaner


logger = logging.getLogger(__name__)


class DOCXParser(BaseParser):
    """Parser for OOXML word processing documents"""

    name = "docx"

    def __init__(self):
        super().__init__()
        self.markitdown = MarkItDown()
        self.text_cleaner = TextCleaner()

    def parse(self, file_content: bytes, file_name: str) -> ExtractionResult:
        """
        Parse DOCX document using MarkItDown

        Args:
            file_content: DOCX file bytes
            file_name: Name of the DOCX file

        Returns:
            ExtractionResult: Extracted text

        Raises:
            ParserException: If conversion fails
        """
        temp_path = None
        try:
            self.logger.info(f"Parsing DOCX: {file_name}")

            # MarkItDown picks its converter from the file extension
            with tempfile.NamedTemporaryFile(mode='wb', suffix='.docx', delete=False) as temp_file:
                temp_file.write(file_content)
                temp_path = temp_file.name

            result = self.markitdown.convert(temp_path)
            content = self.text_cleaner.normalize(result.text_content or "")

            self.logger.info(f"Successfully parsed DOCX: {file_name} ({len(content)} chars)")
            return self._create_result(content)

        except ParserException:
            raise
        except Exception as e:
            raise ParserException(f"Unexpected error parsing DOCX {file_name}", original_error=e)
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError as e:
                    self.logger.warning(f"Failed to remove temp file: {e}")
