"""
PDF parser using the PyMuPDF text layer
"""
import logging

import fitz  # PyMuPDF

from .base_parser import BaseParser
from ..models.schemas import ExtractionResult
from ..exceptions import ParserException
from ..processors.text_cleaner import TextCleaner


logger = logging.getLogger(__name__)


class PDFParser(BaseParser):
    """Parser for PDF documents with an embedded text layer"""

    name = "pdf"

    def __init__(self):
        super().__init__()
        self.text_cleaner = TextCleaner()

    def parse(self, file_content: bytes, file_name: str) -> ExtractionResult:
        """
        Parse PDF document page by page

        Page texts are joined by a blank line. Scanned PDFs without a text
        layer produce empty text rather than an error.

        Args:
            file_content: PDF file bytes
            file_name: Name of the PDF file

        Returns:
            ExtractionResult: Extracted text and page count

        Raises:
            ParserException: If the PDF cannot be opened or read
        """
        try:
            self.logger.info(f"Parsing PDF: {file_name}")

            with fitz.open(stream=file_content, filetype="pdf") as pdf_doc:
                page_count = len(pdf_doc)
                self.logger.info(f"PDF has {page_count} pages")

                pages = []
                for page_index in range(page_count):
                    page_text = pdf_doc[page_index].get_text()
                    page_text = self.text_cleaner.clean_page_text(page_text)
                    if page_text:
                        pages.append(page_text)

            content = "\n\n".join(pages)

            self.logger.info(
                f"Successfully parsed PDF: {file_name} "
                f"({page_count} pages, {len(content)} chars)"
            )
            return self._create_result(content, page_count=page_count)

        except ParserException:
            raise
        except Exception as e:
            raise ParserException(f"Unexpected error parsing PDF {file_name}", original_error=e)
