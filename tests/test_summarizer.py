from unittest.mock import Mock

import pytest

import distill.summarizer as summarizer
from distill.config import ModelSettings
from distill.errors import SummarizationError


@pytest.fixture
def model(monkeypatch):
    model = Mock()
    monkeypatch.setattr(summarizer.genai, "configure", lambda api_key: None)
    monkeypatch.setattr(summarizer.genai, "GenerativeModel", lambda name, system_instruction=None: model)
    return model


def test_summarize_sends_template_and_transcript(model):
    model.generate_content.return_value = Mock(text="  Hi.  ")
    settings = ModelSettings(prompt_template="Summarize:", max_tokens=100, temperature=0.2, top_p=0.9, top_k=5)

    result = summarizer.Summarizer("key", settings).summarize("Hello world")

    assert result == "Hi."
    prompt = model.generate_content.call_args.args[0]
    assert prompt == "Summarize:\n\nHello world"
    config = model.generate_content.call_args.kwargs["generation_config"]
    assert config == {"temperature": 0.2, "top_p": 0.9, "top_k": 5, "max_output_tokens": 100}


def test_model_error_is_fatal(model):
    model.generate_content.side_effect = RuntimeError("quota exceeded")
    with pytest.raises(SummarizationError, match="quota exceeded"):
        summarizer.Summarizer("key", ModelSettings()).summarize("Hello world")


def test_empty_summary_is_fatal(model):
    model.generate_content.return_value = Mock(text="   ")
    with pytest.raises(SummarizationError):
        summarizer.Summarizer("key", ModelSettings()).summarize("Hello world")
