"""
Plain text and markdown parser
"""
from .base_parser import BaseParser
from ..models.schemas import ExtractionResult


UTF8_BOM = "\ufeff"


class TextParser(BaseParser):
    """Parser for text files (.txt, .md), decoded as UTF-8"""

    name = "text"

    def parse(self, file_content: bytes, file_name: str) -> ExtractionResult:
        """
        Decode text content

        Bytes that are not valid UTF-8 (e.g. a cp1252 resume) become
        replacement characters instead of failing the file.

        Args:
            file_content: Raw file bytes
            file_name: Name of the file

        Returns:
            ExtractionResult: Decoded text
        """
        try:
            content = file_content.decode("utf-8")
        except UnicodeDecodeError as e:
            self.logger.warning(f"{file_name} is not valid UTF-8, replacing undecodable bytes: {e}")
            content = file_content.decode("utf-8", errors="replace")

        if content.startswith(UTF8_BOM):
            content = content[len(UTF8_BOM):]

        self.logger.debug(f"Decoded {file_name} ({len(content)} chars)")
        return self._create_result(content)
