"""
Configuration loading.

Settings are read from a TOML file (``config.toml`` in the working directory
by default) and a handful of environment variables that take precedence:

* ``STORAGE_BUCKET`` – bucket the audio is uploaded to.
* ``GENAI_API_KEY`` – API key for the generative model.  Required.
* ``GENAI_MODEL`` – model name used for summarisation.
* ``SUMMARISER_PROMPT`` – prompt template placed before the transcript.

Webhooks for Slack and Teams are configured either as a legacy single
``webhook_endpoint`` or as a ``webhooks`` array of ``{name, endpoint}``
tables.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"

# Environment variable -> location in the parsed file it overrides.
ENV_OVERRIDES = {
    "STORAGE_BUCKET": ("storage", "bucket_name"),
    "GENAI_API_KEY": ("api_key",),
    "GENAI_MODEL": ("model", "model_name"),
    "SUMMARISER_PROMPT": ("prompt", "template"),
}

DEFAULT_PROMPT = (
    "Summarize the following transcript into one or more clear and readable "
    "paragraphs. There may be multiple speakers in this transcript. If so, "
    'speakers are denoted by "spk_x", where `x` is a number; refer to them as '
    '"Speaker x". Capture any ideas discussed, any hot topics you identify, or '
    "any other interesting parts of the conversation between the speakers. At "
    "the end of your summary, give a bullet point list of the key action items, "
    "to-do's, and followup activities. Answer in the same language as the "
    "provided transcript:"
)

DEFAULT_SYSTEM = (
    "Your name is Distiller, and you are an AI assistant that excels at "
    "summarizing conversations."
)


class WebhookTarget(BaseModel):
    """A named webhook endpoint."""

    model_config = ConfigDict(frozen=True)

    name: str
    endpoint: str = ""


class WebhookSettings(BaseModel):
    """Webhooks configured for one destination service.

    ``targets`` is ``None`` when the service uses the legacy single
    ``endpoint`` setting.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    endpoint: str = Field(default="", validation_alias=AliasChoices("endpoint", "webhook_endpoint"))
    targets: Optional[Tuple[WebhookTarget, ...]] = Field(
        default=None, validation_alias=AliasChoices("targets", "webhooks")
    )

    @field_validator("endpoint", mode="before")
    @classmethod
    def _empty_endpoint(cls, value: Any) -> Any:
        return value or ""

    @field_validator("targets", mode="before")
    @classmethod
    def _name_targets(cls, value: Any) -> Any:
        if value is None or not isinstance(value, (list, tuple)):
            return value
        targets = []
        for index, entry in enumerate(value):
            if isinstance(entry, WebhookTarget):
                targets.append(entry)
            elif isinstance(entry, dict):
                targets.append(
                    {
                        "name": entry.get("name") or f"Webhook {index + 1}",
                        "endpoint": entry.get("endpoint") or "",
                    }
                )
            else:
                logger.warning("Ignoring invalid webhook entry %d", index + 1)
                targets.append({"name": "Invalid webhook", "endpoint": ""})
        return targets

    def default_selection(self) -> Optional[list[int]]:
        """Indices that need no prompting, or ``None`` if the user must choose."""
        if self.targets is None:
            return [0] if self.endpoint else []
        if len(self.targets) <= 1:
            return list(range(len(self.targets)))
        return None


class TeamsIcon(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "Flash"
    size: str = "Large"
    style: str = "Filled"
    color: str = "Accent"


class ModelSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", protected_namespaces=())

    model_name: str = "models/gemini-1.5-pro"
    max_tokens: int = Field(default=2000, ge=1)
    temperature: float = Field(default=1.0, ge=0)
    top_p: float = Field(default=0.999, ge=0, le=1)
    top_k: int = Field(default=40, ge=1)
    prompt_template: str = Field(
        default=DEFAULT_PROMPT, validation_alias=AliasChoices("prompt_template", "template")
    )
    system: str = DEFAULT_SYSTEM


class TranscriptionSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    poll_initial_seconds: float = Field(default=2.0, ge=0)
    poll_increment_seconds: float = Field(default=2.0, ge=0)
    poll_max_seconds: float = Field(default=30.0, ge=0)
    max_speakers: int = Field(default=6, ge=1)
    abort_on_job_failure: StrictBool = False

    @model_validator(mode="after")
    def _initial_within_maximum(self) -> "TranscriptionSettings":
        if self.poll_initial_seconds > self.poll_max_seconds:
            raise ValueError("poll_initial_seconds must not exceed poll_max_seconds")
        return self


class Settings(BaseModel):
    """Everything a run needs, validated in one place.

    Built from the layout of ``config.toml``: ``[storage]`` and ``[prompt]``
    are folded into the flat fields and :class:`ModelSettings`, and the Teams
    icon comes from ``[teams.icon]``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    bucket_name: str = Field(
        default="",
        validate_default=True,
        validation_alias=AliasChoices("bucket_name", AliasPath("storage", "bucket_name")),
    )
    api_key: str = Field(default="", validate_default=True)
    transcripts_prefix: str = Field(
        default="transcripts/",
        validation_alias=AliasChoices("transcripts_prefix", AliasPath("storage", "transcripts_prefix")),
    )
    model: ModelSettings = Field(default_factory=ModelSettings)
    transcription: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    slack: WebhookSettings = Field(default_factory=WebhookSettings)
    teams: WebhookSettings = Field(default_factory=WebhookSettings)
    teams_icon: TeamsIcon = Field(
        default_factory=TeamsIcon,
        validation_alias=AliasChoices("teams_icon", AliasPath("teams", "icon")),
    )

    @model_validator(mode="before")
    @classmethod
    def _fold_prompt_section(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "prompt" not in data:
            return data
        prompt = data["prompt"]
        if not isinstance(prompt, dict):
            raise ValueError("[prompt] must be a table")
        model = data.get("model") or {}
        if not isinstance(model, dict):
            raise ValueError("[model] must be a table")
        return {**data, "model": {**model, **prompt}}

    @field_validator("bucket_name")
    @classmethod
    def _bucket_required(cls, value: str) -> str:
        if not value:
            raise ValueError("No storage bucket configured; set [storage] bucket_name or STORAGE_BUCKET")
        return value

    @field_validator("api_key")
    @classmethod
    def _api_key_required(cls, value: str) -> str:
        if not value:
            raise ValueError("GENAI_API_KEY is not set")
        return value


def _apply_env(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    data.pop("api_key", None)
    for var, path in ENV_OVERRIDES.items():
        value = env.get(var)
        if not value:
            continue
        target = data
        for key in path[:-1]:
            target = target.setdefault(key, {})
            if not isinstance(target, dict):
                raise ConfigError(f"[{key}] must be a table")
        target[path[-1]] = value
    return data


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'config'}: {error['msg']}" for error in exc.errors()
    )


def load_settings(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from ``path`` and the environment.

    Raises:
        ConfigError: If the file is missing or malformed, or a setting is
            absent or invalid.
    """
    config_path = Path(path or DEFAULT_CONFIG_PATH).expanduser()
    env = os.environ if env is None else env
    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(
            f"Failed to load {config_path}. Make sure it exists in the current directory."
        ) from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed configuration in {config_path}: {exc}") from exc
    logger.info("Loaded configuration from %s", config_path)
    try:
        return Settings.model_validate(_apply_env(data, env))
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {_describe(exc)}") from exc
