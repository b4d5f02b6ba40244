"""core.types

Shared DTOs and enums used throughout *ticket_bridge*.

These models live in the **core** layer so that *adapters*, *registry*, and
the ticket layer can depend on them without causing circular imports.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

# ---------------------------------------------------------------------------
# Chat roles (OpenAI-style for broad compatibility)
# ---------------------------------------------------------------------------


class Role(StrEnum):
    system = 'system'
    user = 'user'
    assistant = 'assistant'


class FinishReason(StrEnum):
    stop = 'stop'
    length = 'length'
    content_filter = 'content_filter'


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """Single chat message."""

    role: Role
    content: str

    # Immutable value-object
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


# ---------------------------------------------------------------------------
# Generation options (backend-agnostic)
# ---------------------------------------------------------------------------


class GenerationOptions(BaseModel):
    """Sampling knobs. Unset fields fall back to the backend's defaults."""

    max_tokens: int | None = Field(None, ge=1, description='Maximum tokens in completion')
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    stop_sequences: tuple[str, ...] | None = None

    model_config = ConfigDict(frozen=True)


class GenerationRequest(BaseModel):
    """Ordered conversation plus options, as handed to an adapter."""

    messages: tuple[Message, ...] = Field(..., min_length=1)
    options: GenerationOptions = Field(default_factory=GenerationOptions)

    model_config = ConfigDict(frozen=True)

    @property
    def system_prompt(self) -> str | None:
        """Concatenated system messages (some APIs take them out-of-band)."""
        parts = [m.content for m in self.messages if m.role is Role.system]
        return '\n\n'.join(parts) if parts else None

    @property
    def conversation(self) -> tuple[Message, ...]:
        """Messages without the system role."""
        return tuple(m for m in self.messages if m.role is not Role.system)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    model_config = ConfigDict(frozen=True)


class GenerationResult(BaseModel):
    """Normalized completion returned by every adapter."""

    content: str
    model: str
    usage: Usage | None = None
    finish_reason: FinishReason | None = None

    model_config = ConfigDict(frozen=True)


class HealthStatus(BaseModel):
    healthy: bool
    latency_ms: float | None = None
    error: str | None = None
    available_models: tuple[str, ...] | None = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Adapter configuration
# ---------------------------------------------------------------------------


class BackendConfig(BaseModel):
    """Construction-time configuration for one adapter instance."""

    api_key: SecretStr | None = None
    model: str | None = Field(None, min_length=1)
    base_url: str | None = Field(None, min_length=1)
    timeout_sec: float | None = Field(None, gt=0.0, description='Deadline for one outbound call (seconds)')

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    @property
    def api_key_value(self) -> str | None:
        """Plain-text key, or None when absent or blank."""
        if self.api_key is None:
            return None
        return self.api_key.get_secret_value().strip() or None
