"""
Text cleaning utilities for postprocessing extraction outputs.
"""

import re


class TextCleaner:
    """Normalizes whitespace and strips control characters from extracted text."""

    def __init__(self):
        self.control_chars = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')
        self.multiple_spaces = re.compile(r'[ \t]{2,}')
        self.multiple_newlines = re.compile(r'\n{3,}')

    def normalize(self, text: str) -> str:
        """
        Normalize whitespace by collapsing multiple spaces and newlines.

        Args:
            text: Text with irregular whitespace

        Returns:
            Text with normalized whitespace
        """
        if not text:
            return ""

        text = text.replace('\r\n', '\n').replace('\r', '\n')
        text = self.control_chars.sub('', text)
        text = text.replace('\t', ' ')
        text = self.multiple_spaces.sub(' ', text)

        # Remove spaces at line beginnings/ends
        lines = [line.strip() for line in text.split('\n')]
        text = '\n'.join(lines)

        # Collapse multiple newlines into maximum of two
        text = self.multiple_newlines.sub('\n\n', text)

        return text.strip()

    def clean_page_text(self, text: str) -> str:
        """
        Clean the text layer of a single PDF page.

        PyMuPDF ends pages with a form feed and leaves hyphenated line breaks
        from justified layouts; both are removed here.

        Args:
            text: Raw page text

        Returns:
            Cleaned page text
        """
        if not text:
            return ""
        text = text.replace('\f', '\n')
        text = re.sub(r'(\w)-\n(\w)', r'\1\2', text)
        return self.normalize(text)
