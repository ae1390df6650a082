"""
Tests for TextExtractor dispatch and the format parsers
"""
from unittest.mock import MagicMock, patch

import fitz
import pytest

from voca_ingestion.exceptions import ParserException, is_retryable
from voca_ingestion.parsers import TextExtractor
from voca_ingestion.parsers.text_extractor import DOCX_MEDIA_TYPE


@pytest.fixture
def extractor():
    return TextExtractor()


def _make_pdf(*pages):
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.mark.parametrize("media_type,file_name,expected", [
    ("application/pdf", None, "pdf"),
    ("application/pdf; charset=binary", "x.txt", "pdf"),
    (DOCX_MEDIA_TYPE, None, "docx"),
    ("application/msword", None, "docx"),
    ("text/plain", None, "text"),
    (None, "notes.md", "text"),
    (None, "CV.PDF", "pdf"),
    (None, "letter.docx", "docx"),
    ("application/octet-stream", "resume.pdf", "pdf"),
    ("audio/mpeg", "clip.mp3", None),
    (None, None, None),
])
def test_resolve_handler(extractor, media_type, file_name, expected):
    assert extractor.resolve_handler(media_type, file_name) == expected


def test_plain_text_strips_bom(extractor):
    result = extractor.extract("\ufeffJane Doe\nPython developer".encode("utf-8"), "text/plain", "cv.txt")
    assert result.text == "Jane Doe\nPython developer"
    assert result.handler == "text"


def test_non_utf8_text_is_decoded_with_replacement(extractor):
    content = "R\u00e9sum\u00e9: caf\u00e9 manager".encode("cp1252")

    result = extractor.extract(content, "text/plain", "cv.txt")

    assert result.handler == "text"
    assert result.text == "R\ufffdsum\ufffd: caf\ufffd manager"


def test_unknown_format_is_decoded_best_effort(extractor):
    result = extractor.extract(b"caf\xe9 menu", None, "menu.bin")
    assert result.handler == "raw"
    assert result.text.startswith("caf")
    assert "\ufffd" in result.text


def test_empty_input_yields_empty_text(extractor):
    result = extractor.extract(b"", "application/pdf", "empty.pdf")
    assert result.text == ""


def test_pdf_pages_are_joined_by_blank_line(extractor):
    data = _make_pdf("First page text", "Second page text")
    result = extractor.extract(data, "application/pdf", "cv.pdf")
    assert result.handler == "pdf"
    assert result.page_count == 2
    assert "First page text" in result.text
    assert "Second page text" in result.text
    assert "\n\n" in result.text


def test_corrupt_pdf_raises_parser_exception(extractor):
    with pytest.raises(ParserException) as exc_info:
        extractor.extract(b"this is definitely not a pdf file", "application/pdf", "broken.pdf")
    assert not is_retryable(exc_info.value)


def test_docx_uses_markitdown(extractor):
    docx_parser = extractor.parsers["docx"]
    with patch.object(docx_parser, "markitdown") as markitdown:
        markitdown.convert.return_value = MagicMock(text_content="# Cover letter\n\n\n\nDear team")
        result = extractor.extract(b"PK\x03\x04 fake docx", DOCX_MEDIA_TYPE, "letter.docx")

    assert result.handler == "docx"
    assert result.text == "# Cover letter\n\nDear team"
    converted_path = markitdown.convert.call_args[0][0]
    assert converted_path.endswith(".docx")


def test_docx_conversion_error_is_wrapped(extractor):
    docx_parser = extractor.parsers["docx"]
    with patch.object(docx_parser, "markitdown") as markitdown:
        markitdown.convert.side_effect = RuntimeError("zip file is corrupt")
        with pytest.raises(ParserException):
            extractor.extract(b"not a zip", None, "letter.docx")
