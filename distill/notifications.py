"""
Delivery of a summary to chat webhooks.

A :class:`WebhookDispatcher` sends one rendered message to the webhooks of a
single destination service.  Slack and Teams differ only in the payload, so
the dispatcher is parameterised by a renderer (:class:`SlackMessage` or
:class:`TeamsCard`) and is otherwise shared.

Two configurations are supported:

* a legacy single ``webhook_endpoint``: one attempt, and the result is
  reported directly;
* a list of named webhooks, of which the user selected some: targets are
  sent to one after the other, each attempt is reported as an intermediate
  progress update, and the counts are reduced to a single
  :class:`AggregateOutcome`.

Failed deliveries never raise.  Whatever happens, the dispatcher asks the
:class:`~distill.progress.ProgressCoordinator` for exactly one terminal
message, and falls back to printing the summary when nothing was sent.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import requests

from .config import TeamsIcon, WebhookSettings, WebhookTarget
from .errors import DeliveryError
from .progress import ERROR_SYMBOL, ProgressCoordinator

logger = logging.getLogger(__name__)

SLACK_INTRO = "A summarization job just completed:"
DEFAULT_TEAMS_TITLE = "A meeting from today..."


class OutcomeKind(enum.Enum):
    ALL_SUCCEEDED = "all_succeeded"
    PARTIAL = "partial"
    ALL_FAILED = "all_failed"
    NO_TARGETS_SELECTED = "no_targets_selected"
    NOT_CONFIGURED = "not_configured"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one POST to one target.  ``error`` is ``None`` on success."""

    target: WebhookTarget
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AggregateOutcome:
    kind: OutcomeKind
    succeeded: int = 0
    failed: int = 0
    outcomes: Tuple[DeliveryOutcome, ...] = ()

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[DeliveryOutcome]) -> "AggregateOutcome":
        outcomes = tuple(outcomes)
        if not outcomes:
            return cls(OutcomeKind.NO_TARGETS_SELECTED)
        succeeded = sum(1 for outcome in outcomes if outcome.succeeded)
        failed = len(outcomes) - succeeded
        if succeeded and failed:
            kind = OutcomeKind.PARTIAL
        elif failed == 0:
            kind = OutcomeKind.ALL_SUCCEEDED
        else:
            kind = OutcomeKind.ALL_FAILED
        return cls(kind, succeeded, failed, outcomes)


class PayloadRenderer(Protocol):
    def render(self, text: str) -> Dict[str, Any]: ...


class SlackMessage:
    """Plain text payload for Slack workflow webhooks."""

    def render(self, text: str) -> Dict[str, Any]:
        return {"content": f"{SLACK_INTRO}\n\n{text}"}


def _local_now() -> datetime:
    return datetime.now().astimezone()


class TeamsCard:
    """Adaptive card payload for Teams workflow webhooks."""

    def __init__(
        self,
        title: str = DEFAULT_TEAMS_TITLE,
        icon: Optional[TeamsIcon] = None,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self.title = title
        self.icon = icon or TeamsIcon()
        self._clock = clock

    def date_header(self) -> str:
        now = self._clock()
        return f"Date: {now.strftime('%m-%d-%Y %I:%M:%S %p')} {now.tzname() or ''}".rstrip()

    def render(self, text: str) -> Dict[str, Any]:
        header = {
            "type": "ColumnSet",
            "columns": [
                {
                    "type": "Column",
                    "items": [
                        {
                            "type": "Icon",
                            "name": self.icon.name,
                            "size": self.icon.size,
                            "style": self.icon.style,
                            "color": self.icon.color,
                        }
                    ],
                    "width": "auto",
                },
                {
                    "type": "Column",
                    "spacing": "medium",
                    "verticalContentAlignment": "center",
                    "items": [
                        {
                            "type": "TextBlock",
                            "wrap": True,
                            "style": "heading",
                            "weight": "Bolder",
                            "size": "Large",
                            "text": self.title,
                        }
                    ],
                    "width": "auto",
                },
            ],
        }
        return {
            "type": "message",
            "attachments": [
                {
                    "contentType": "application/vnd.microsoft.card.adaptive",
                    "contentUrl": None,
                    "content": {
                        "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
                        "type": "AdaptiveCard",
                        "version": "1.5",
                        "msteams": {"width": "Full"},
                        "body": [
                            header,
                            {
                                "type": "TextBlock",
                                "wrap": True,
                                "style": "heading",
                                "weight": "Bolder",
                                "size": "Medium",
                                "text": self.date_header(),
                            },
                            {
                                "type": "Container",
                                "showBorder": True,
                                "roundedCorners": True,
                                "maxHeight": "400px",
                                "items": [
                                    {"type": "TextBlock", "maxLines": 100, "wrap": True, "text": text}
                                ],
                            },
                        ],
                    },
                }
            ],
        }


class WebhookTransport:
    """JSON POST to a webhook endpoint, one attempt per call."""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._session = session or requests.Session()

    def post(self, endpoint: str, payload: Dict[str, Any]) -> None:
        try:
            response = self._session.post(endpoint, json=payload)
        except requests.RequestException as exc:
            raise DeliveryError(str(exc)) from exc
        if not response.ok:
            raise DeliveryError(f"{response.status_code} {response.reason}")


class WebhookDispatcher:
    """Send a message to the webhooks of one service and report the outcome."""

    def __init__(
        self,
        label: str,
        renderer: PayloadRenderer,
        progress: ProgressCoordinator,
        transport: Optional[WebhookTransport] = None,
        *,
        success_message: Optional[str] = None,
    ) -> None:
        self.label = label
        self._renderer = renderer
        self._progress = progress
        self._transport = transport or WebhookTransport()
        self.success_message = success_message or f"Summary sent to {label}!"

    def dispatch(
        self, settings: WebhookSettings, selection: Sequence[int], message: str
    ) -> AggregateOutcome:
        if settings.targets is None:
            return self._dispatch_single(settings.endpoint, message)
        return self._dispatch_many(settings.targets, selection, message)

    def _console_fallback(self, message: str) -> None:
        self._progress.echo(f"Summary:\n{message}\n")

    def _dispatch_single(self, endpoint: str, message: str) -> AggregateOutcome:
        if not endpoint:
            logger.warning("%s webhook endpoint is not configured", self.label)
            self._progress.warn(
                f"{self.label} webhook endpoint is not configured. Skipping {self.label} notification."
            )
            self._console_fallback(message)
            return AggregateOutcome(OutcomeKind.NOT_CONFIGURED)

        target = WebhookTarget(name=self.label, endpoint=endpoint)
        self._progress.update(f"Sending to {self.label}")
        outcome = self._send(target, self._renderer.render(message))
        if outcome.succeeded:
            self._progress.succeed(self.success_message)
        else:
            self._progress.echo(f"{ERROR_SYMBOL} Error sending summary to {self.label}: {outcome.error}")
            self._progress.fail(f"Failed to send summary to {self.label}!")
        return AggregateOutcome.from_outcomes([outcome])

    def _resolve_selection(
        self, targets: Sequence[WebhookTarget], selection: Sequence[int]
    ) -> List[WebhookTarget]:
        selected = []
        for index in selection:
            if not 0 <= index < len(targets):
                logger.warning("Ignoring %s webhook index %d; only %d configured", self.label, index, len(targets))
                continue
            target = targets[index]
            if not target.endpoint:
                logger.warning("Ignoring %s webhook %r without an endpoint", self.label, target.name)
                continue
            selected.append(target)
        return selected

    def _dispatch_many(
        self, targets: Sequence[WebhookTarget], selection: Sequence[int], message: str
    ) -> AggregateOutcome:
        selected = self._resolve_selection(targets, selection)
        if not selected:
            self._progress.warn(f"No {self.label} webhooks selected. Skipping {self.label} notification.")
            self._console_fallback(message)
            return AggregateOutcome(OutcomeKind.NO_TARGETS_SELECTED)

        payload = self._renderer.render(message)
        self._progress.update(f"Processing {len(selected)} {self.label} webhooks...")
        outcomes = []
        for target in selected:
            self._progress.update(f"Sending to {self.label} ({target.name})")
            outcome = self._send(target, payload)
            if outcome.succeeded:
                self._progress.update(f"Successfully sent to {self.label} ({target.name})")
            else:
                self._progress.update(f"Error sending to {self.label} ({target.name}): {outcome.error}")
            outcomes.append(outcome)

        aggregate = AggregateOutcome.from_outcomes(outcomes)
        self._finalize(aggregate)
        return aggregate

    def _send(self, target: WebhookTarget, payload: Dict[str, Any]) -> DeliveryOutcome:
        try:
            self._transport.post(target.endpoint, payload)
        except DeliveryError as exc:
            logger.warning("Delivery to %s (%s) failed: %s", self.label, target.name, exc.detail)
            return DeliveryOutcome(target, error=exc.detail)
        logger.info("Delivered summary to %s (%s)", self.label, target.name)
        return DeliveryOutcome(target)

    def _finalize(self, aggregate: AggregateOutcome) -> None:
        if aggregate.kind is OutcomeKind.ALL_SUCCEEDED:
            self._progress.succeed(
                f"{self.success_message} (Sent to {aggregate.succeeded} {self.label} webhooks)"
            )
        elif aggregate.kind is OutcomeKind.PARTIAL:
            self._progress.warn(
                f"Sent to {aggregate.succeeded} {self.label} webhooks, "
                f"failed to send to {aggregate.failed} webhooks"
            )
        else:
            self._progress.fail(f"Failed to send summary to any {self.label} webhooks!")


def slack_dispatcher(
    progress: ProgressCoordinator, transport: Optional[WebhookTransport] = None
) -> WebhookDispatcher:
    return WebhookDispatcher("Slack", SlackMessage(), progress, transport)


def teams_dispatcher(
    progress: ProgressCoordinator,
    *,
    title: str = DEFAULT_TEAMS_TITLE,
    icon: Optional[TeamsIcon] = None,
    success_message: Optional[str] = None,
    transport: Optional[WebhookTransport] = None,
) -> WebhookDispatcher:
    return WebhookDispatcher(
        "Teams",
        TeamsCard(title=title, icon=icon),
        progress,
        transport,
        success_message=success_message,
    )
