import pytest
from docx import Document

from distill import writers
from distill.errors import OutputError


def test_text_file_is_verbatim(tmp_path):
    path = writers.write_summary(writers.FileKind.TEXT, str(tmp_path / "out"), "Hi.\nBye.")
    assert path.name == "out.txt"
    assert path.read_text() == "Hi.\nBye."


def test_markdown_has_header(tmp_path):
    path = writers.write_summary(writers.FileKind.MARKDOWN, str(tmp_path / "out"), "Hi.")
    assert path.read_text() == "# Summary\n\nHi."


def test_word_document(tmp_path):
    path = writers.write_summary(writers.FileKind.WORD, str(tmp_path / "out"), "Hi.")
    assert path.suffix == ".docx"
    assert Document(str(path)).paragraphs[-1].text == "Hi."


def test_save_transcript(tmp_path):
    path = writers.save_transcript(str(tmp_path / "meeting"), "spk_0: Hello")
    assert path.name == "meeting.trans"
    assert path.read_text() == "spk_0: Hello"


def test_unwritable_location(tmp_path):
    with pytest.raises(OutputError):
        writers.write_summary(writers.FileKind.TEXT, str(tmp_path / "missing" / "out"), "Hi.")
    with pytest.raises(OutputError):
        writers.save_transcript(str(tmp_path / "missing" / "out"), "Hi.")
