import pytest

import distill.main as main
from distill.config import Settings, WebhookSettings, WebhookTarget
from distill.errors import ConfigError, TranscriptionError
from distill.tasks import OutputType

TARGETS = (WebhookTarget(name="General", endpoint="https://a"), WebhookTarget(name="Project", endpoint="https://b"))


class FakeOrchestrator:
    def __init__(self, error=None):
        self.error = error
        self.options = None

    def run(self, options):
        self.options = options
        if self.error:
            raise self.error


@pytest.fixture
def fake_run(monkeypatch, indicator):
    settings = Settings(bucket_name="bucket", api_key="key", slack=WebhookSettings(targets=TARGETS))
    monkeypatch.setattr(main, "load_settings", lambda path: settings)
    monkeypatch.setattr(main, "Spinner", lambda text: indicator)
    orchestrator = FakeOrchestrator()
    monkeypatch.setattr(main, "build_orchestrator", lambda settings, progress: orchestrator)
    return orchestrator


def test_parse_args_defaults():
    args = main.parse_args(["-i", "meeting.mp3"])
    assert args.output_type is OutputType.TERMINAL
    assert args.summary_file_name == "summarized_output"
    assert args.language_code == "en-US"
    assert args.delete_source_object == "Y"
    assert args.save_transcript is False


def test_parse_args_output_type_is_case_insensitive():
    assert main.parse_args(["-i", "a.mp3", "-o", "TeamsSplit"]).output_type is OutputType.TEAMS_SPLIT


def test_parse_selection():
    assert main.parse_selection("2, 0,2", 3) == [2, 0]
    assert main.parse_selection("", 3) == []
    with pytest.raises(ConfigError):
        main.parse_selection("5", 3)
    with pytest.raises(ConfigError):
        main.parse_selection("one", 3)


def test_select_webhooks():
    legacy = WebhookSettings(endpoint="https://legacy")
    assert main.select_webhooks("slack", legacy, None, interactive=False) == [0]
    single = WebhookSettings(targets=TARGETS[:1])
    assert main.select_webhooks("slack", single, "1", interactive=False) == [0]
    many = WebhookSettings(targets=TARGETS)
    assert main.select_webhooks("slack", many, "1", interactive=False) == [1]
    assert main.select_webhooks("slack", many, None, interactive=False) == []


def test_select_webhooks_prompts(monkeypatch):
    monkeypatch.setattr("builtins.input", lambda prompt: "0,1")
    assert main.select_webhooks("teams", WebhookSettings(targets=TARGETS), None, interactive=True) == [0, 1]


def test_main_success(fake_run):
    code = main.main(["-i", "meeting.mp3", "-o", "slack", "--webhooks", "1", "-d", "N", "-t"])
    assert code == 0
    options = fake_run.options
    assert options.output_type is OutputType.SLACK
    assert options.webhooks == (1,)
    assert options.delete_source is False
    assert options.save_transcript is True


def test_main_run_failure_exits_non_zero(fake_run, indicator, capsys):
    fake_run.error = TranscriptionError("service unavailable")
    assert main.main(["-i", "meeting.mp3"]) == 1
    assert indicator.terminal == [("fail", "service unavailable")]
    assert "Error: service unavailable" in capsys.readouterr().err


def test_main_config_error_exits_non_zero(monkeypatch, tmp_path, capsys):
    monkeypatch.delenv("GENAI_API_KEY", raising=False)
    code = main.main(["-i", "meeting.mp3", "--config", str(tmp_path / "missing.toml")])
    assert code == 1
    assert "Failed to load" in capsys.readouterr().err
