"""
Google Speech‑to‑Text service wrapper.

Recognition runs as a long‑running operation that writes its result JSON to
Cloud Storage.  This module exposes the four calls the job poller needs:
start a job, read its status, fetch the result document and render it as
text.

Usage::

    from distill.stt_service import TranscriptionService

    service = TranscriptionService(storage)
    job_id = service.submit("gs://my-bucket/meeting.wav", "en-US")
    report = service.get_status(job_id)
"""

import json
import logging
import uuid
from pathlib import PurePosixPath
from typing import Any, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import speech_v1p1beta1 as speech

from . import transcript_formatter
from .errors import StorageError, TranscriptionError
from .job_poller import JobStatus, JobStatusReport
from .storage_service import CloudStorage

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Submit and inspect long‑running recognition jobs."""

    def __init__(
        self,
        storage: CloudStorage,
        *,
        transcripts_prefix: str = "transcripts/",
        max_speakers: int = 6,
        client: Optional[Any] = None,
    ) -> None:
        self._storage = storage
        self._transcripts_prefix = transcripts_prefix
        self._max_speakers = max_speakers
        self._client = client or speech.SpeechClient()

    def _result_uri(self, source_uri: str) -> str:
        stem = PurePosixPath(source_uri).stem
        name = f"{self._transcripts_prefix}{stem}-{uuid.uuid4().hex[:8]}.json"
        return self._storage.uri_for(name)

    def submit(self, source_uri: str, language_code: str) -> str:
        """Start recognition of ``source_uri`` and return the operation name."""
        diarization_config = speech.SpeakerDiarizationConfig(
            enable_speaker_diarization=True,
            min_speaker_count=1,
            max_speaker_count=self._max_speakers,
        )
        config = speech.RecognitionConfig(
            language_code=language_code,
            enable_automatic_punctuation=True,
            enable_word_time_offsets=True,
            diarization_config=diarization_config,
        )
        request = speech.LongRunningRecognizeRequest(
            config=config,
            audio=speech.RecognitionAudio(uri=source_uri),
            output_config=speech.TranscriptOutputConfig(gcs_uri=self._result_uri(source_uri)),
        )
        logger.info("Starting STT job for %s", source_uri)
        try:
            operation = self._client.long_running_recognize(request=request)
        except (GoogleAPIError, GoogleAuthError) as exc:
            raise TranscriptionError(f"Failed to start transcription: {exc}") from exc
        job_id = operation.operation.name
        logger.info("STT job %s submitted", job_id)
        return job_id

    def get_status(self, job_id: str) -> JobStatusReport:
        try:
            operation = self._client.transport.operations_client.get_operation(job_id)
        except (GoogleAPIError, GoogleAuthError) as exc:
            raise TranscriptionError(f"Failed to check transcription job {job_id}: {exc}") from exc

        if not operation.done:
            progress = 0
            if operation.HasField("metadata"):
                metadata = speech.LongRunningRecognizeMetadata.deserialize(operation.metadata.value)
                progress = metadata.progress_percent
            status = JobStatus.IN_PROGRESS if progress else JobStatus.SUBMITTED
            return JobStatusReport(status=status, progress_percent=progress)

        if operation.HasField("error"):
            return JobStatusReport(
                status=JobStatus.FAILED,
                failure_reason=operation.error.message or None,
            )

        if operation.HasField("response"):
            response = speech.LongRunningRecognizeResponse.deserialize(operation.response.value)
            if response.output_error.message:
                return JobStatusReport(
                    status=JobStatus.FAILED,
                    failure_reason=response.output_error.message,
                )
            return JobStatusReport(
                status=JobStatus.COMPLETED,
                result_uri=response.output_config.gcs_uri or None,
                progress_percent=100,
            )

        return JobStatusReport(status=JobStatus.UNKNOWN)

    def fetch(self, result_uri: str) -> str:
        try:
            return self._storage.download_text(result_uri)
        except StorageError as exc:
            raise TranscriptionError(f"Failed to download transcription result: {exc.detail}") from exc

    def parse(self, raw: str) -> str:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise TranscriptionError(f"Transcription result is not valid JSON: {exc}") from exc
        return transcript_formatter.render_transcript(data)
