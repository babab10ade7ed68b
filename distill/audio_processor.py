"""
Audio preparation before upload.

The recogniser works best on mono 16 kHz WAV, so anything else is converted
locally with `pydub` (which delegates to ``ffmpeg``) before it is uploaded.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from .errors import AudioError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".mp3", ".m4a", ".flac", ".wav", ".mp4"}


def resolve_input(path: str) -> Path:
    """Expand ``~`` in ``path`` and check that it is a supported audio file.

    Raises:
        AudioError: If the file does not exist or has an unsupported
            extension.
    """
    resolved = Path(path).expanduser()
    if not resolved.exists():
        raise AudioError(f"The path {resolved} does not exist.")
    if not is_supported_audio(str(resolved)):
        raise AudioError(f"Unsupported audio type: {resolved.suffix.lower() or '(none)'}")
    return resolved.resolve()


def convert_to_wav(input_path: str, *, target_sample_rate: int = 16_000) -> str:
    """Convert an audio file to a mono WAV file at ``target_sample_rate``.

    Returns:
        The path of the converted file, in a temporary location the caller
        must remove with :func:`cleanup_temp_file`.
    """
    try:
        audio = AudioSegment.from_file(input_path)
    except (CouldntDecodeError, OSError) as exc:
        raise AudioError(f"Error loading file {input_path}: {exc}") from exc
    audio = audio.set_channels(1).set_frame_rate(target_sample_rate)
    fd, tmp_path = tempfile.mkstemp(suffix=".wav")
    os.close(fd)
    try:
        audio.export(tmp_path, format="wav")
    except (CouldntEncodeError, OSError) as exc:
        cleanup_temp_file(tmp_path)
        raise AudioError(f"Error converting {input_path} to WAV: {exc}") from exc
    logger.info("Converted %s to %s", input_path, tmp_path)
    return tmp_path


def is_supported_audio(path: str) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def cleanup_temp_file(path: Optional[str]) -> None:
    """Remove a temporary file if it exists."""
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError:
            logger.warning("Could not remove temporary file %s", path)
