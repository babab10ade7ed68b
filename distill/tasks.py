"""
Orchestration layer for a Distill run.

:class:`PipelineOrchestrator` runs the stages of one run strictly in order:

* **Upload** – prepare the audio and put it in the bucket.
* **Transcribe** – run a transcription job to completion.
* **Summarize** – ask the language model for a summary.
* **Deliver** – print, write or send the summary, depending on the output
  type.
* **Cleanup** – optionally delete the uploaded audio.
* **SaveTranscript** – optionally keep the full transcript next to the
  summary.

Upload, Transcribe and Summarize failures abort the run.  File outputs are
fatal too, since a requested file cannot be silently dropped, while webhook
failures are absorbed into the dispatcher's aggregate outcome.  Cleanup and
SaveTranscript run whether or not delivery succeeded and only report their
own failures.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from . import audio_processor, writers
from .config import Settings
from .errors import OutputError, StorageError
from .job_poller import JobPoller
from .notifications import AggregateOutcome, WebhookTransport, slack_dispatcher, teams_dispatcher
from .progress import ERROR_SYMBOL, ProgressCoordinator
from .storage_service import CloudStorage

logger = logging.getLogger(__name__)


class OutputType(enum.Enum):
    TERMINAL = "terminal"
    TEXT = "text"
    WORD = "word"
    MARKDOWN = "markdown"
    SLACK = "slack"
    SLACK_SPLIT = "slacksplit"
    TEAMS = "teams"
    TEAMS_SPLIT = "teamssplit"

    @property
    def service(self) -> Optional[str]:
        """Name of the webhook service this output sends to, if any."""
        if self in (OutputType.SLACK, OutputType.SLACK_SPLIT):
            return "slack"
        if self in (OutputType.TEAMS, OutputType.TEAMS_SPLIT):
            return "teams"
        return None


class Stage(enum.Enum):
    UPLOAD = "upload"
    TRANSCRIBE = "transcribe"
    SUMMARIZE = "summarize"
    DELIVER = "deliver"
    CLEANUP = "cleanup"
    SAVE_TRANSCRIPT = "save_transcript"


class SummaryBackend(Protocol):
    def summarize(self, text: str) -> str: ...


@dataclass(frozen=True)
class RunOptions:
    input_path: str
    output_type: OutputType = OutputType.TERMINAL
    summary_file_name: str = "summarized_output"
    language_code: str = "en-US"
    delete_source: bool = True
    save_transcript: bool = False
    webhooks: Sequence[int] = ()
    teams_title: str = "A meeting from today..."


@dataclass
class RunResult:
    source_uri: Optional[str] = None
    transcript: Optional[str] = None
    summary: Optional[str] = None
    output_path: Optional[Path] = None
    delivery: Optional[AggregateOutcome] = None
    transcript_path: Optional[Path] = None
    completed: tuple = ()


_FILE_KINDS = {
    OutputType.TEXT: writers.FileKind.TEXT,
    OutputType.MARKDOWN: writers.FileKind.MARKDOWN,
    OutputType.WORD: writers.FileKind.WORD,
}


class PipelineOrchestrator:
    def __init__(
        self,
        settings: Settings,
        storage: CloudStorage,
        poller: JobPoller,
        summarizer: SummaryBackend,
        progress: ProgressCoordinator,
        *,
        transport: Optional[WebhookTransport] = None,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._poller = poller
        self._summarizer = summarizer
        self._progress = progress
        self._transport = transport

    def run(self, options: RunOptions) -> RunResult:
        result = RunResult()
        self._progress.reset()

        self._progress.update("Uploading file to storage...")
        result.source_uri = self._upload(options.input_path)
        self._advance(result, Stage.UPLOAD)

        self._progress.update("Transcribing audio...")
        result.transcript = self._poller.run_job(result.source_uri, options.language_code)
        self._advance(result, Stage.TRANSCRIBE)

        self._progress.update("Summarizing text...")
        result.summary = self._summarizer.summarize(result.transcript)
        self._advance(result, Stage.SUMMARIZE)

        try:
            self._deliver(options, result)
            self._advance(result, Stage.DELIVER)
        finally:
            if options.delete_source:
                self._cleanup(result)
            if options.save_transcript:
                self._save_transcript(options, result)

        if not self._progress.succeed("Done!"):
            self._progress.echo("Done!")
        return result

    def _advance(self, result: RunResult, stage: Stage) -> None:
        result.completed += (stage,)
        logger.info("Stage %s complete", stage.value)

    def _upload(self, input_path: str) -> str:
        source = audio_processor.resolve_input(input_path)
        converted = None
        try:
            if source.suffix.lower() != ".wav":
                self._progress.update("Converting audio...")
                converted = audio_processor.convert_to_wav(str(source))
                local_path, object_name = converted, f"{source.stem}.wav"
            else:
                local_path, object_name = str(source), source.name
            self._progress.update("Uploading file to storage...")
            return self._storage.put(local_path, object_name, content_type="audio/wav")
        finally:
            audio_processor.cleanup_temp_file(converted)

    def _deliver(self, options: RunOptions, result: RunResult) -> None:
        summary = result.summary
        output_type = options.output_type
        match output_type:
            case OutputType.TERMINAL:
                self._progress.succeed("Done!")
                self._progress.echo(f"\nSummary:\n{summary}\n")
            case OutputType.TEXT | OutputType.MARKDOWN | OutputType.WORD:
                result.output_path = writers.write_summary(
                    _FILE_KINDS[output_type], options.summary_file_name, summary
                )
                self._progress.succeed("Done!")
                self._progress.echo(f"💾 Summary written to {result.output_path}")
            case OutputType.SLACK:
                dispatcher = slack_dispatcher(self._progress, self._transport)
                result.delivery = dispatcher.dispatch(self._settings.slack, options.webhooks, summary)
            case OutputType.SLACK_SPLIT:
                self._write_split_file(options, result)
                dispatcher = slack_dispatcher(self._progress, self._transport)
                result.delivery = dispatcher.dispatch(self._settings.slack, options.webhooks, summary)
            case OutputType.TEAMS:
                dispatcher = teams_dispatcher(
                    self._progress,
                    title=options.teams_title,
                    icon=self._settings.teams_icon,
                    transport=self._transport,
                )
                result.delivery = dispatcher.dispatch(self._settings.teams, options.webhooks, summary)
            case OutputType.TEAMS_SPLIT:
                self._write_split_file(options, result)
                dispatcher = teams_dispatcher(
                    self._progress,
                    title=options.teams_title,
                    icon=self._settings.teams_icon,
                    success_message="Summary sent to Teams and written to output file!",
                    transport=self._transport,
                )
                result.delivery = dispatcher.dispatch(self._settings.teams, options.webhooks, summary)
            case _:
                raise ValueError(f"Unhandled output type: {output_type}")
        if result.delivery is not None:
            logger.info(
                "Delivery outcome %s (%d sent, %d failed)",
                result.delivery.kind.value,
                result.delivery.succeeded,
                result.delivery.failed,
            )

    def _write_split_file(self, options: RunOptions, result: RunResult) -> None:
        result.output_path = writers.write_summary(
            writers.FileKind.TEXT, options.summary_file_name, result.summary
        )
        self._progress.echo(f"💾 Summary written to {result.output_path}")

    def _cleanup(self, result: RunResult) -> None:
        if result.source_uri is None:
            return
        try:
            self._storage.delete(result.source_uri)
        except StorageError as exc:
            logger.warning("Cleanup failed: %s", exc.detail)
            self._progress.echo(f"{ERROR_SYMBOL} Could not delete {result.source_uri}: {exc.detail}")
            return
        self._advance(result, Stage.CLEANUP)

    def _save_transcript(self, options: RunOptions, result: RunResult) -> None:
        if result.transcript is None:
            return
        try:
            result.transcript_path = writers.save_transcript(options.summary_file_name, result.transcript)
        except OutputError as exc:
            logger.warning("Saving transcript failed: %s", exc.detail)
            self._progress.echo(f"{ERROR_SYMBOL} {exc.detail}")
            return
        self._progress.echo(f"📝 Full transcript saved to {result.transcript_path}")
        self._advance(result, Stage.SAVE_TRANSCRIPT)
