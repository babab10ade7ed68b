"""
Command-line entrypoint.

Usage::

    distill -i meeting.m4a -o markdown -s weekly_sync
    distill -i meeting.m4a -o teams --webhooks 0,2 --title "Weekly sync"

Settings come from ``config.toml`` (see :mod:`distill.config`).  The exit
status is 0 when the summary was produced and delivered, even if some
webhooks failed, and 1 when the run stopped on an error.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from google.auth.exceptions import DefaultCredentialsError

from .config import Settings, WebhookSettings, load_settings
from .errors import ConfigError, DistillError
from .job_poller import BackoffPolicy, JobPoller
from .notifications import DEFAULT_TEAMS_TITLE
from .progress import ProgressCoordinator, Spinner
from .storage_service import CloudStorage
from .stt_service import TranscriptionService
from .summarizer import Summarizer
from .tasks import OutputType, PipelineOrchestrator, RunOptions

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="distill",
        description=(
            "Summarize an audio file (e.g., a meeting) with Google Speech-to-Text "
            "and a generative model.\n\nNotes:\n- Uploaded audio is deleted by default!\n"
            "- Use --save-transcript to keep the full transcript."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-i", "--input-audio-file", required=True, help="Audio file to summarize")
    parser.add_argument(
        "-o",
        "--output-type",
        type=lambda value: OutputType(value.lower()),
        default=OutputType.TERMINAL,
        help="One of: " + ", ".join(t.value for t in OutputType) + " (default: terminal)",
    )
    parser.add_argument(
        "-s", "--summary-file-name", default="summarized_output", help="Output file name without extension"
    )
    parser.add_argument("-l", "--language-code", default="en-US", help="BCP-47 language code of the audio")
    parser.add_argument(
        "-d",
        "--delete-source-object",
        default="Y",
        choices=["Y", "N", "y", "n"],
        help="Delete the uploaded audio afterwards (default: Y)",
    )
    parser.add_argument(
        "-t", "--save-transcript", action="store_true", help="Save the full transcript to a .trans file"
    )
    parser.add_argument("--webhooks", default=None, help="Comma-separated webhook numbers to send to")
    parser.add_argument("--title", default=None, help="Title of the Teams card")
    parser.add_argument("--config", default=None, help="Path to the configuration file")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "WARNING"),
        help="Logging level (default: WARNING, or LOG_LEVEL)",
    )
    return parser.parse_args(argv)


def parse_selection(value: str, count: int) -> List[int]:
    """Parse ``"0, 2"`` into ``[0, 2]``; out-of-range numbers are rejected."""
    indices = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            index = int(part)
        except ValueError as exc:
            raise ConfigError(f"Invalid webhook number: {part!r}") from exc
        if not 0 <= index < count:
            raise ConfigError(f"Webhook number {index} is out of range (0-{count - 1})")
        if index not in indices:
            indices.append(index)
    return indices


def select_webhooks(
    service: str, webhooks: WebhookSettings, requested: Optional[str], *, interactive: bool
) -> List[int]:
    """Decide which webhooks of ``service`` to send to.

    A legacy endpoint or a single configured webhook is used without asking.
    With several, ``requested`` wins, then an interactive prompt.
    """
    default = webhooks.default_selection()
    if default is not None:
        return default
    targets = webhooks.targets or ()
    if requested is not None:
        return parse_selection(requested, len(targets))
    if not interactive:
        return []
    for index, target in enumerate(targets):
        print(f"  [{index}] {target.name}")
    answer = input(f"📝 Select {service} channels to send the summary to (e.g. 0,2): ")
    return parse_selection(answer, len(targets))


def _teams_title(requested: Optional[str], *, interactive: bool) -> str:
    if requested:
        return requested
    if not interactive:
        return DEFAULT_TEAMS_TITLE
    answer = input(f"📝 Enter a title for the Teams card [{DEFAULT_TEAMS_TITLE}]: ").strip()
    return answer or DEFAULT_TEAMS_TITLE


def build_options(args: argparse.Namespace, settings: Settings, *, interactive: bool) -> RunOptions:
    output_type: OutputType = args.output_type
    service = output_type.service
    webhooks: List[int] = []
    title = DEFAULT_TEAMS_TITLE
    if service is not None:
        configured = settings.slack if service == "slack" else settings.teams
        webhooks = select_webhooks(service, configured, args.webhooks, interactive=interactive)
        if not webhooks:
            print(f"⚠️ No {service.capitalize()} webhooks selected.")
        if service == "teams":
            title = _teams_title(args.title, interactive=interactive)
    return RunOptions(
        input_path=args.input_audio_file,
        output_type=output_type,
        summary_file_name=args.summary_file_name,
        language_code=args.language_code,
        delete_source=args.delete_source_object.upper() == "Y",
        save_transcript=args.save_transcript,
        webhooks=tuple(webhooks),
        teams_title=title,
    )


def build_orchestrator(settings: Settings, progress: ProgressCoordinator) -> PipelineOrchestrator:
    try:
        storage = CloudStorage(settings.bucket_name)
        storage.check_bucket()
        service = TranscriptionService(
            storage,
            transcripts_prefix=settings.transcripts_prefix,
            max_speakers=settings.transcription.max_speakers,
        )
    except DefaultCredentialsError as exc:
        raise ConfigError(f"Google Cloud credentials are not available: {exc}") from exc
    print(f"📦 Storage bucket: {settings.bucket_name}")
    policy = BackoffPolicy(
        initial=settings.transcription.poll_initial_seconds,
        increment=settings.transcription.poll_increment_seconds,
        maximum=settings.transcription.poll_max_seconds,
    )
    poller = JobPoller(
        service,
        progress,
        policy,
        strict=settings.transcription.abort_on_job_failure,
    )
    summarizer = Summarizer(settings.api_key, settings.model)
    return PipelineOrchestrator(settings, storage, poller, summarizer, progress)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )
    interactive = sys.stdin.isatty()

    print("🧙 Welcome to Distill CLI")
    print(f"📄 Processing file: {Path(args.input_audio_file).name}")
    print(f"🔄 Output type: {args.output_type.value}")

    try:
        settings = load_settings(args.config)
        print(f"📦 Using model: {settings.model.model_name}")
        progress = ProgressCoordinator()
        orchestrator = build_orchestrator(settings, progress)
        options = build_options(args, settings, interactive=interactive)
    except DistillError as exc:
        logger.error("Configuration error: %s", exc.detail)
        print(f"Error: {exc.detail}", file=sys.stderr)
        return 1

    if args.output_type.service is None:
        print(f"📦 Current output file name: {options.summary_file_name}")

    progress.attach(Spinner("Uploading file to storage..."))
    try:
        orchestrator.run(options)
    except DistillError as exc:
        logger.error("Run failed: %s", exc.detail)
        progress.fail(exc.detail)
        print(f"Error: {exc.detail}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
