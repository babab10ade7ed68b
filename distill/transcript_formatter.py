"""
Transcript formatting utilities.

The Speech‑to‑Text result is a nested structure of results, alternatives and
words.  The functions in this module flatten it and rebuild a transcript in
which every change of speaker starts a new line labelled ``spk_<tag>:``.
Results without speaker tags are joined from their best alternatives.
"""

import re
from typing import Any, Dict, Iterable, List

_PUNCTUATION = re.compile(r"^[\.!?,:;]+$")


def flatten_word_info(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return the word dictionaries of the best alternative of every result.

    Only words carrying a ``speakerTag`` are kept: with diarisation enabled
    the recogniser repeats every word of the audio, tagged, in the last
    result, and the earlier untagged words would otherwise appear twice.
    """
    words: List[Dict[str, Any]] = []
    for result in data.get("results", []):
        alternatives = result.get("alternatives", [])
        if not alternatives:
            continue
        for wi in alternatives[0].get("words", []):
            if wi.get("word") and wi.get("speakerTag"):
                words.append(wi)
    return words


def _plain_transcript(data: Dict[str, Any]) -> str:
    parts = []
    for result in data.get("results", []):
        alternatives = result.get("alternatives", [])
        if alternatives and alternatives[0].get("transcript", "").strip():
            parts.append(alternatives[0]["transcript"].strip())
    return " ".join(parts)


def format_transcript(words: Iterable[Dict[str, Any]]) -> str:
    """Group consecutive words by speaker into ``spk_<tag>: ...`` lines."""
    lines: List[str] = []
    current_line = ""
    current_speaker = None
    for wi in words:
        word = wi.get("word", "")
        if not word:
            continue
        speaker = wi.get("speakerTag", 0)
        if speaker != current_speaker:
            if current_line:
                lines.append(current_line)
            current_line = f"spk_{speaker}: {word}"
            current_speaker = speaker
        elif _PUNCTUATION.match(word):
            current_line += word
        else:
            current_line += f" {word}"
    if current_line:
        lines.append(current_line)
    return "\n".join(lines)


def render_transcript(data: Dict[str, Any]) -> str:
    """Render a recognition result as text, labelled by speaker when possible."""
    words = flatten_word_info(data)
    if words:
        return format_transcript(words)
    return _plain_transcript(data)
