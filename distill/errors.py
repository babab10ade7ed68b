"""
Exception hierarchy for the Distill pipeline.

Every error the pipeline raises on purpose derives from :class:`DistillError`
so the command-line entrypoint can report it and exit with a non-zero status
without catching unrelated programming errors.
"""


class DistillError(Exception):
    """Base exception for all Distill errors."""

    def __init__(self, detail: str = "An unexpected error occurred") -> None:
        self.detail = detail
        super().__init__(detail)


class ConfigError(DistillError):
    """Raised when configuration is missing or malformed."""


class AudioError(DistillError):
    """Raised when the input audio cannot be found or prepared."""


class StorageError(DistillError):
    """Raised when an object storage call fails."""


class TranscriptionError(DistillError):
    """Raised when submitting or checking a transcription job fails."""


class JobFailedError(TranscriptionError):
    """Raised when a job ends without a usable transcript and the run is strict."""


class SummarizationError(DistillError):
    """Raised when the language model call fails."""


class OutputError(DistillError):
    """Raised when a requested output file cannot be written."""


class DeliveryError(DistillError):
    """Raised by a webhook transport when a single POST fails."""
