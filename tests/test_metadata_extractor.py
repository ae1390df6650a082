"""
Tests for MetadataExtractor
"""
from voca_ingestion.processors import MetadataExtractor


def test_counts_words_sentences_and_chars():
    metadata = MetadataExtractor().extract("One two three. Four five! Six?", page_count=2)
    assert metadata.word_count == 6
    assert metadata.sentence_count == 3
    assert metadata.char_count == 30
    assert metadata.page_count == 2
    assert metadata.avg_word_length > 0


def test_detects_english():
    text = "She worked on the team and is in charge of the release for a client with care"
    assert MetadataExtractor().extract(text).language == "en"


def test_unknown_language_without_markers():
    assert MetadataExtractor().extract("Lebenslauf Softwareentwicklerin Berlin").language == "unknown"


def test_empty_text():
    metadata = MetadataExtractor().extract("")
    assert metadata.word_count == 0
    assert metadata.language == "unknown"
