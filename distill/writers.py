"""
File outputs for a summary or a transcript.

Each writer takes a base name without extension and appends its own
extension.  All of them raise :class:`distill.errors.OutputError` so the
orchestrator can treat a failed file write as fatal.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from docx import Document

from .errors import OutputError

logger = logging.getLogger(__name__)

TRANSCRIPT_EXTENSION = ".trans"


class FileKind(enum.Enum):
    TEXT = ".txt"
    MARKDOWN = ".md"
    WORD = ".docx"

    @property
    def extension(self) -> str:
        return self.value


def _write_text(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise OutputError(f"Error creating file {path}: {exc}") from exc


def _write_word(path: Path, content: str) -> None:
    doc = Document()
    doc.add_paragraph(content)
    try:
        doc.save(str(path))
    except OSError as exc:
        raise OutputError(f"Error writing Word document {path}: {exc}") from exc


def write_summary(kind: FileKind, base_name: str, text: str) -> Path:
    """Write ``text`` as ``kind`` to ``base_name`` plus the kind's extension."""
    path = Path(base_name + kind.extension)
    if kind is FileKind.WORD:
        _write_word(path, text)
    elif kind is FileKind.MARKDOWN:
        _write_text(path, f"# Summary\n\n{text}")
    else:
        _write_text(path, text)
    logger.info("Summary written to %s", path)
    return path


def save_transcript(base_name: str, text: str) -> Path:
    path = Path(base_name + TRANSCRIPT_EXTENSION)
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise OutputError(f"Error writing transcript file {path}: {exc}") from exc
    logger.info("Transcript saved to %s", path)
    return path
