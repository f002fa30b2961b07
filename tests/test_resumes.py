"""
Tests for résumé text extraction and attachment collection.
"""

import io

from conftest import make_message


def test_extract_docx(docx_bytes):
    """Word files are parsed and whitespace is normalised."""
    from hirebox.resumes import extract_text

    text = extract_text(docx_bytes, "Jane_Doe.DOCX")

    assert text == "Jane Doe Senior Python developer, 6 years of Flask and AWS."


def test_extract_legacy_doc_with_docx_content(docx_bytes):
    from hirebox.resumes import extract_text

    assert "Senior Python developer" in extract_text(docx_bytes, "resume.doc")


def test_extract_pdf_without_text_layer():
    """A valid PDF with no text yields an empty string."""
    from pypdf import PdfWriter

    from hirebox.resumes import extract_text

    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)

    assert extract_text(buffer.getvalue(), "scan.pdf") == ""


def test_corrupt_files_return_empty_string():
    """Parsing failures never raise."""
    from hirebox.resumes import extract_text

    assert extract_text(b"not a pdf at all", "cv.pdf") == ""
    assert extract_text(b"not a zip", "cv.docx") == ""
    assert extract_text(b"", "cv.pdf") == ""


def test_unsupported_extension_returns_empty_string():
    from hirebox.resumes import extract_text

    assert extract_text(b"plain text", "cv.txt") == ""


def test_is_supported():
    from hirebox.resumes import is_supported

    assert is_supported("cv.PDF")
    assert is_supported("cv.doc")
    assert is_supported("cv.docx")
    assert not is_supported("cv.pages")
    assert not is_supported("")
    assert not is_supported("pdf")


def test_clean_text():
    from hirebox.resumes import clean_text

    assert clean_text("  Jane\x00 Doe\n\n\tPython  ") == "Jane Doe Python"


def test_collect_attachments_skips_unsupported_types():
    from unittest.mock import Mock

    from hirebox.email.attachments import collect_attachments

    adapter = Mock()
    adapter.get_attachment_bytes.side_effect = lambda cred, msg, att: f"bytes-{att}".encode()
    message = make_message("m1", [("a1", "logo.png"), ("a2", "cv.pdf"), ("a3", "refs.docx")])
    extract = Mock(return_value="resume text")

    attachments, text = collect_attachments(adapter, Mock(), message, extract)

    assert [a.filename for a in attachments] == ["cv.pdf", "refs.docx"]
    assert text == "resume text"
    extract.assert_called_once_with(b"bytes-a2", "cv.pdf")
    # The unsupported file is never downloaded
    assert [c.args[2] for c in adapter.get_attachment_bytes.call_args_list] == ["a2", "a3"]


def test_collect_attachments_none_qualifying():
    from unittest.mock import Mock

    from hirebox.email.attachments import collect_attachments

    extract = Mock()
    attachments, text = collect_attachments(
        Mock(), Mock(), make_message("m1", [("a1", "photo.jpg")]), extract
    )

    assert attachments == []
    assert text == ""
    extract.assert_not_called()
