"""
Tracking of a transcription job from submission to a terminal status.

The poller submits a job, checks its status with a growing delay between
checks and resolves the final status into text.  A job that completes
without a result, fails, or ends in a status we do not recognise is not an
error at this layer: it resolves to a fixed sentence describing what
happened, unless the poller was created with ``strict=True``.

Only transport failures (submitting the job, checking its status, fetching
the result) raise, and they abort the loop immediately.
"""

from __future__ import annotations

import enum
import functools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from tenacity import RetryCallState, Retrying, retry_if_result, stop_never, wait_incrementing

from .errors import ConfigError, JobFailedError
from .progress import ProgressCoordinator

logger = logging.getLogger(__name__)

RESULT_MISSING_TEXT = "The transcription job completed, but no transcript was available."
JOB_FAILED_TEXT = "The transcription job failed."
UNEXPECTED_STATUS_TEXT = "The transcription job ended with an unexpected status."


class JobStatus(enum.Enum):
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobStatus.SUBMITTED, JobStatus.IN_PROGRESS)


@dataclass(frozen=True)
class JobStatusReport:
    """One answer of the transcription service to a status check."""

    status: JobStatus
    result_uri: Optional[str] = None
    failure_reason: Optional[str] = None
    progress_percent: int = 0


@dataclass
class TranscriptionJob:
    """A submitted job, owned by the poller until it resolves."""

    id: str
    status: JobStatus = JobStatus.SUBMITTED
    poll_interval: float = 0.0
    result_uri: Optional[str] = None


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay between status checks: ``initial``, then ``+increment`` each time, capped at ``maximum``."""

    initial: float = 2.0
    increment: float = 2.0
    maximum: float = 30.0

    def __post_init__(self) -> None:
        if self.initial < 0 or self.increment < 0:
            raise ConfigError("Poll intervals must not be negative")
        if self.initial > self.maximum:
            raise ConfigError("The initial poll interval must not exceed the maximum")

    def wait_strategy(self) -> wait_incrementing:
        return wait_incrementing(start=self.initial, increment=self.increment, max=self.maximum)


class TranscriptionBackend(Protocol):
    def submit(self, source_uri: str, language_code: str) -> str: ...

    def get_status(self, job_id: str) -> JobStatusReport: ...

    def fetch(self, result_uri: str) -> str: ...

    def parse(self, raw: str) -> str: ...


def failed_job_text(reason: Optional[str]) -> str:
    if reason:
        return f"{JOB_FAILED_TEXT} Reason: {reason}"
    return JOB_FAILED_TEXT


class JobPoller:
    """Run a transcription job to completion and return its text."""

    def __init__(
        self,
        service: TranscriptionBackend,
        progress: Optional[ProgressCoordinator] = None,
        policy: Optional[BackoffPolicy] = None,
        *,
        strict: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._service = service
        self._progress = progress or ProgressCoordinator()
        self._policy = policy or BackoffPolicy()
        self._strict = strict
        self._sleep = sleep
        self.last_job: Optional[TranscriptionJob] = None

    def run_job(self, source_uri: str, language_code: str) -> str:
        job = TranscriptionJob(
            id=self._service.submit(source_uri, language_code),
            poll_interval=self._policy.initial,
        )
        self.last_job = job
        logger.info("Polling transcription job %s", job.id)

        retrying = Retrying(
            retry=retry_if_result(lambda report: not report.status.is_terminal),
            wait=self._policy.wait_strategy(),
            stop=stop_never,
            sleep=self._sleep,
            before_sleep=functools.partial(self._before_sleep, job),
        )
        report = retrying(self._check, job)
        return self._resolve(job, report)

    def _check(self, job: TranscriptionJob) -> JobStatusReport:
        report = self._service.get_status(job.id)
        job.status = report.status
        logger.debug("Job %s status: %s", job.id, report.status.value)
        return report

    def _before_sleep(self, job: TranscriptionJob, retry_state: RetryCallState) -> None:
        job.poll_interval = retry_state.next_action.sleep
        report = retry_state.outcome.result()
        if report.progress_percent:
            self._progress.update(f"Transcribing audio... {report.progress_percent}%")
        else:
            self._progress.update("Transcribing audio...")
        logger.debug("Job %s not finished; checking again in %.1fs", job.id, job.poll_interval)

    def _resolve(self, job: TranscriptionJob, report: JobStatusReport) -> str:
        if report.status is JobStatus.COMPLETED:
            job.result_uri = report.result_uri
            if job.result_uri:
                logger.info("Job %s completed; fetching %s", job.id, job.result_uri)
                return self._service.parse(self._service.fetch(job.result_uri))
            logger.warning("Job %s completed without a result location", job.id)
            return self._outcome(RESULT_MISSING_TEXT)
        if report.status is JobStatus.FAILED:
            logger.warning("Job %s failed: %s", job.id, report.failure_reason)
            return self._outcome(failed_job_text(report.failure_reason))
        logger.warning("Job %s ended with status %s", job.id, report.status.value)
        return self._outcome(UNEXPECTED_STATUS_TEXT)

    def _outcome(self, text: str) -> str:
        if self._strict:
            raise JobFailedError(text)
        return text
