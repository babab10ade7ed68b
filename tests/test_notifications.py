from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from distill.config import TeamsIcon, WebhookSettings, WebhookTarget
from distill.errors import DeliveryError
from distill.notifications import (
    AggregateOutcome,
    DeliveryOutcome,
    OutcomeKind,
    SlackMessage,
    TeamsCard,
    WebhookDispatcher,
    WebhookTransport,
    slack_dispatcher,
    teams_dispatcher,
)

TARGETS = (
    WebhookTarget(name="General", endpoint="https://hooks.example/general"),
    WebhookTarget(name="Project", endpoint="https://hooks.example/project"),
    WebhookTarget(name="Management", endpoint="https://hooks.example/management"),
)


class FakeTransport:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.posts = []

    def post(self, endpoint, payload):
        self.posts.append((endpoint, payload))
        if endpoint in self.failing:
            raise DeliveryError("500 Internal Server Error")


def test_partial_delivery(progress, indicator):
    transport = FakeTransport(failing={"https://hooks.example/project"})
    dispatcher = slack_dispatcher(progress, transport)

    outcome = dispatcher.dispatch(WebhookSettings(targets=TARGETS), [0, 1, 2], "Hi.")

    assert outcome.kind is OutcomeKind.PARTIAL
    assert (outcome.succeeded, outcome.failed) == (2, 1)
    assert [endpoint for endpoint, _ in transport.posts] == [t.endpoint for t in TARGETS]
    assert indicator.terminal == [("warn", "Sent to 2 Slack webhooks, failed to send to 1 webhooks")]


def test_all_succeeded(progress, indicator):
    transport = FakeTransport()
    outcome = slack_dispatcher(progress, transport).dispatch(WebhookSettings(targets=TARGETS), [0, 1, 2], "Hi.")

    assert outcome.kind is OutcomeKind.ALL_SUCCEEDED
    assert outcome.succeeded == 3
    assert indicator.terminal == [("success", "Summary sent to Slack! (Sent to 3 Slack webhooks)")]


def test_all_failed(progress, indicator):
    transport = FakeTransport(failing={t.endpoint for t in TARGETS})
    outcome = slack_dispatcher(progress, transport).dispatch(WebhookSettings(targets=TARGETS), [0, 2], "Hi.")

    assert outcome.kind is OutcomeKind.ALL_FAILED
    assert (outcome.succeeded, outcome.failed) == (0, 2)
    assert indicator.terminal == [("fail", "Failed to send summary to any Slack webhooks!")]


def test_per_target_updates_are_sequential_and_not_terminal(progress, indicator):
    transport = FakeTransport(failing={"https://hooks.example/general"})
    teams_dispatcher(progress, transport=transport).dispatch(WebhookSettings(targets=TARGETS), [1, 0], "Hi.")

    assert indicator.updates == [
        "Processing 2 Teams webhooks...",
        "Sending to Teams (Project)",
        "Successfully sent to Teams (Project)",
        "Sending to Teams (General)",
        "Error sending to Teams (General): 500 Internal Server Error",
    ]
    assert len(indicator.terminal) == 1


def test_no_targets_selected_sends_nothing(progress, indicator):
    transport = FakeTransport()
    outcome = slack_dispatcher(progress, transport).dispatch(WebhookSettings(targets=TARGETS), [], "Hi.")

    assert outcome.kind is OutcomeKind.NO_TARGETS_SELECTED
    assert transport.posts == []
    assert indicator.terminal[0][0] == "warn"
    assert indicator.echoed == ["Summary:\nHi.\n"]


def test_empty_target_list_sends_nothing(progress, indicator):
    transport = FakeTransport()
    outcome = slack_dispatcher(progress, transport).dispatch(WebhookSettings(targets=()), [0], "Hi.")
    assert outcome.kind is OutcomeKind.NO_TARGETS_SELECTED
    assert transport.posts == []


def test_invalid_selection_is_skipped(progress):
    targets = TARGETS + (WebhookTarget(name="Empty", endpoint=""),)
    transport = FakeTransport()
    outcome = slack_dispatcher(progress, transport).dispatch(WebhookSettings(targets=targets), [7, 3, 1], "Hi.")

    assert outcome.kind is OutcomeKind.ALL_SUCCEEDED
    assert [endpoint for endpoint, _ in transport.posts] == ["https://hooks.example/project"]


def test_single_endpoint_not_configured(progress, indicator):
    transport = FakeTransport()
    outcome = slack_dispatcher(progress, transport).dispatch(WebhookSettings(endpoint=""), [], "Hi.")

    assert outcome.kind is OutcomeKind.NOT_CONFIGURED
    assert transport.posts == []
    assert indicator.terminal == [
        ("warn", "Slack webhook endpoint is not configured. Skipping Slack notification.")
    ]
    assert indicator.echoed == ["Summary:\nHi.\n"]


def test_single_endpoint_success(progress, indicator):
    transport = FakeTransport()
    dispatcher = teams_dispatcher(progress, success_message="Summary sent to Teams!", transport=transport)
    outcome = dispatcher.dispatch(WebhookSettings(endpoint="https://hooks.example/legacy"), [0], "Hi.")

    assert outcome.kind is OutcomeKind.ALL_SUCCEEDED
    assert [endpoint for endpoint, _ in transport.posts] == ["https://hooks.example/legacy"]
    assert indicator.updates == ["Sending to Teams"]
    assert indicator.terminal == [("success", "Summary sent to Teams!")]


def test_single_endpoint_failure_is_reported(progress, indicator):
    transport = FakeTransport(failing={"https://hooks.example/legacy"})
    outcome = slack_dispatcher(progress, transport).dispatch(
        WebhookSettings(endpoint="https://hooks.example/legacy"), [0], "Hi."
    )

    assert outcome.kind is OutcomeKind.ALL_FAILED
    assert indicator.echoed == ["❌ Error sending summary to Slack: 500 Internal Server Error"]
    assert indicator.terminal == [("fail", "Failed to send summary to Slack!")]


def test_dispatch_does_not_finalize_twice(progress, indicator):
    progress.succeed("Done!")
    slack_dispatcher(progress, FakeTransport()).dispatch(WebhookSettings(targets=TARGETS), [0], "Hi.")
    assert indicator.terminal == [("success", "Done!")]


def test_aggregate_from_outcomes():
    ok = DeliveryOutcome(TARGETS[0])
    bad = DeliveryOutcome(TARGETS[1], error="timeout")
    assert AggregateOutcome.from_outcomes([ok, bad, ok]).kind is OutcomeKind.PARTIAL
    assert AggregateOutcome.from_outcomes([ok, ok, ok]).kind is OutcomeKind.ALL_SUCCEEDED
    assert AggregateOutcome.from_outcomes([bad, bad]).kind is OutcomeKind.ALL_FAILED
    assert AggregateOutcome.from_outcomes([]).kind is OutcomeKind.NO_TARGETS_SELECTED


def test_slack_payload():
    assert SlackMessage().render("Hi.") == {"content": "A summarization job just completed:\n\nHi."}


def test_teams_card_payload():
    clock = lambda: datetime(2024, 5, 1, 14, 3, 9, tzinfo=timezone.utc)  # noqa: E731
    card = TeamsCard(title="Weekly sync", icon=TeamsIcon(name="Calendar", color="Good"), clock=clock)

    payload = card.render("Hi.")

    content = payload["attachments"][0]["content"]
    header, date_block, container = content["body"]
    icon = header["columns"][0]["items"][0]
    assert icon == {"type": "Icon", "name": "Calendar", "size": "Large", "style": "Filled", "color": "Good"}
    assert header["columns"][1]["items"][0]["text"] == "Weekly sync"
    assert date_block["text"] == "Date: 05-01-2024 02:03:09 PM UTC"
    assert container["items"][0]["text"] == "Hi."


def test_transport_raises_on_http_error():
    session = Mock()
    session.post.return_value = Mock(ok=False, status_code=404, reason="Not Found")
    with pytest.raises(DeliveryError, match="404 Not Found"):
        WebhookTransport(session).post("https://hooks.example/x", {"content": "Hi."})
    session.post.assert_called_once_with("https://hooks.example/x", json={"content": "Hi."})


def test_transport_wraps_connection_errors():
    session = Mock()
    session.post.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(DeliveryError, match="connection refused"):
        WebhookTransport(session).post("https://hooks.example/x", {})


def test_dispatcher_uses_renderer(progress):
    renderer = Mock()
    renderer.render.return_value = {"text": "rendered"}
    transport = FakeTransport()
    WebhookDispatcher("Chat", renderer, progress, transport).dispatch(
        WebhookSettings(targets=TARGETS), [0, 1], "Hi."
    )
    renderer.render.assert_called_once_with("Hi.")
    assert [payload for _, payload in transport.posts] == [{"text": "rendered"}] * 2
