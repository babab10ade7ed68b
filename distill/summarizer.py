"""
Transcript summarisation with a generative model.

The prompt is the configured template followed by a blank line and the
transcript.  The system instruction and generation parameters come from
:class:`distill.config.ModelSettings`.  Unlike the optional cleaning steps
of a batch job, a failed summary cannot be skipped here, so every failure
raises :class:`distill.errors.SummarizationError`.
"""

from __future__ import annotations

import logging

import google.generativeai as genai

from .config import ModelSettings
from .errors import SummarizationError

logger = logging.getLogger(__name__)


def build_prompt(template: str, transcript: str) -> str:
    return f"{template}\n\n{transcript}"


class Summarizer:
    def __init__(self, api_key: str, settings: ModelSettings) -> None:
        genai.configure(api_key=api_key)
        self._settings = settings
        self._model = genai.GenerativeModel(
            settings.model_name,
            system_instruction=settings.system or None,
        )

    def summarize(self, text: str) -> str:
        """Summarise ``text`` and return the model's answer."""
        settings = self._settings
        prompt = build_prompt(settings.prompt_template, text)
        logger.info("Calling generative model %s for summarisation", settings.model_name)
        try:
            response = self._model.generate_content(
                prompt,
                generation_config={
                    "temperature": settings.temperature,
                    "top_p": settings.top_p,
                    "top_k": settings.top_k,
                    "max_output_tokens": settings.max_tokens,
                },
            )
            summary = response.text.strip()
        except Exception as exc:
            raise SummarizationError(f"Error generating summary: {exc}") from exc
        if not summary:
            raise SummarizationError("The model returned an empty summary")
        return summary
