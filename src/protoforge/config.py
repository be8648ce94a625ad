"""Unified configuration: gateway connection, generation pipeline, surgical edits.

All settings are loaded from environment (with optional .env). Each component
receives its settings object explicitly; nothing here is cached globally.
"""

from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """LLM gateway configuration.

    Read from environment with prefix LLM_. ``model`` is a LiteLLM model string;
    the provider prefix (``openai/``) is dropped for raw streaming requests.
    """

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gateway_url: str = Field(
        default="https://api.deepseek.com/v1",
        description="Base URL of the OpenAI-compatible gateway.",
    )
    model: str = Field(
        default="openai/deepseek-chat",
        description="LiteLLM model string (e.g. openai/deepseek-chat).",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Optional API key; else from provider env vars.",
    )
    temperature: float = Field(
        default=0.7, ge=0.0, le=2.0, description="Sampling temperature."
    )
    max_tokens: int = Field(
        default=4000, ge=1, le=8000, description="Completion token budget."
    )
    timeout: float = Field(
        default=60.0, gt=0, description="Non-streaming request timeout in seconds."
    )
    stream_timeout: float = Field(
        default=30.0, gt=0, description="Streaming request timeout in seconds."
    )
    health_timeout: float = Field(
        default=5.0, gt=0, description="Health check timeout in seconds."
    )

    @field_validator("gateway_url")
    @classmethod
    def _validate_gateway_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("gateway_url must be a valid URL with scheme and netloc")
        return v.rstrip("/")

    @property
    def wire_model(self) -> str:
        """Model name as sent on the raw wire (provider prefix removed)."""
        return self.model.split("/", 1)[-1]


class GenerationSettings(BaseSettings):
    """Retry, backoff and pacing knobs for the generation pipeline (prefix GEN_)."""

    model_config = SettingsConfigDict(
        env_prefix="GEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    plan_retries: int = Field(default=3, ge=1, le=10)
    stream_retries: int = Field(
        default=2, ge=0, le=10, description="Additional attempts after the first."
    )
    doc_retries: int = Field(default=2, ge=1, le=10)
    backoff_scale: float = Field(
        default=1.0, ge=0.0, description="Multiplier applied to every backoff wait."
    )
    fallback_char_delay: float = Field(
        default=0.01, ge=0.0, description="Seconds between fallback characters."
    )
    doc_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    doc_max_tokens: int = Field(default=1000, ge=1)
    workflow_recursion_limit: int = Field(default=200, ge=10)
    output_dir: str = "output"


class EditSettings(BaseSettings):
    """Guards for LLM-backed surgical edits (prefix EDIT_)."""

    model_config = SettingsConfigDict(
        env_prefix="EDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_change_ratio: float = Field(default=0.20, gt=0.0, le=1.0)
    simple_edit_change_ratio: float = Field(default=0.05, gt=0.0, le=1.0)
    min_length_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Edited output shorter than this share of the original is rejected.",
    )


class GenerationPreferences(BaseModel):
    """User-facing generation preferences carried into every prompt."""

    output_type: Literal["html-js", "react"] = "html-js"
    framework: Literal["vanilla", "react", "vue"] = "vanilla"
    styling: Literal["tailwind", "css", "styled-components"] = "tailwind"
    responsive: bool = True
    accessibility: bool = True
