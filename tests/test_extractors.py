import docx
import pytest

from avatar_knowledge.exceptions import ExtractionError
from avatar_knowledge.indexing.extractors import clean_text, is_supported, list_document_files, load_document


def test_plain_text_document(tmp_path):
    path = tmp_path / "faq.txt"
    path.write_text("Line one\r\n\r\n\r\n\r\nLine   two", encoding="utf-8")

    doc = load_document(path)

    assert doc.id == "faq.txt"
    assert doc.source_name == "faq.txt"
    assert doc.mime_kind == "text"
    assert doc.raw_text == "Line one\n\nLine two"


def test_word_document(tmp_path):
    path = tmp_path / "manual.docx"
    document = docx.Document()
    document.add_paragraph("First paragraph")
    document.add_paragraph("Second paragraph")
    document.save(str(path))

    doc = load_document(path)

    assert doc.mime_kind == "word"
    assert "First paragraph" in doc.raw_text
    assert "Second paragraph" in doc.raw_text


def test_broken_pdf_raises_extraction_error(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")

    with pytest.raises(ExtractionError) as excinfo:
        load_document(path)
    assert excinfo.value.source_name == "broken.pdf"


def test_unsupported_kind_is_rejected(tmp_path):
    path = tmp_path / "slides.pptx"
    path.write_bytes(b"binary")

    assert not is_supported(path)
    with pytest.raises(ExtractionError):
        load_document(path)


def test_extension_match_is_case_insensitive(tmp_path):
    path = tmp_path / "NOTES.TXT"
    path.write_text("upper", encoding="utf-8")
    assert is_supported(path)
    assert load_document(path).raw_text == "upper"


def test_list_document_files_sorted_and_missing_dir(tmp_path):
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "sub").mkdir()

    assert [p.name for p in list_document_files(tmp_path)] == ["a.txt", "b.txt"]
    assert list_document_files(tmp_path / "missing") == []


def test_clean_text_collapses_blank_runs():
    assert clean_text("  a\n\n\n\nb\t\tc  ") == "a\n\nb c"
