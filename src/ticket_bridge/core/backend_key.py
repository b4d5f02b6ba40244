"""core.backend_key

Value object identifying one cached adapter instance, plus a parser for the
``"<backend>:<model>"`` shorthand accepted by the registry:

    "claude:claude-sonnet-4-20250514"
    "ollama:llama3:8b"

Only the first colon separates the backend from the model, because local model
tags (``llama3:8b``) contain colons themselves.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Regular-expression helpers
# ---------------------------------------------------------------------------

_BACKEND_KEY_REGEX: re.Pattern[str] = re.compile(
    r'^(?P<provider>[a-z0-9_-]+):(?P<model>\S+)$',
    re.IGNORECASE,
)

#: Cache slot used when no explicit model is configured.
DEFAULT_MODEL_SLOT = 'default'


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class BackendKey(BaseModel):
    """Cache key for the adapter registry.

    * `provider` … backend slug (e.g. ``claude``), case-insensitive
    * `model` … model identifier exactly as configured, or ``default``
    """

    provider: str = Field(..., pattern=r'^[a-z0-9_-]+$', description='backend slug')
    model: str = Field(DEFAULT_MODEL_SLOT, min_length=1, description='model identifier')

    model_config = {
        'frozen': True,  # hashable / usable as dict key
        'str_strip_whitespace': True,
    }

    # --------------------------- Validators ---------------------------

    @field_validator('provider', mode='before')
    @classmethod
    def _provider_to_lower(cls, v: str) -> str:
        """Force lower-case for case-insensitive matching."""
        return v.lower()

    # --------------------------- Constructors -------------------------

    @classmethod
    def parse(cls, raw: str) -> BackendKey:
        """Parse and validate a ``"<backend>:<model>"`` string.

        >>> BackendKey.parse("ollama:llama3:8b")
        BackendKey(provider='ollama', model='llama3:8b')
        """
        if (m := _BACKEND_KEY_REGEX.match(raw.strip())) is None:
            raise ValueError(f"Invalid backend key. Expected '<backend>:<model>', got: {raw}")
        return cls(provider=m.group('provider'), model=m.group('model'))

    @classmethod
    def of(cls, provider: str, model: str | None) -> BackendKey:
        return cls(provider=provider, model=model or DEFAULT_MODEL_SLOT)

    # --------------------------- Dunder helpers -----------------------

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f'{self.provider}:{self.model}'


def split_backend_name(raw: str) -> tuple[str, str | None]:
    """Return ``(backend, model)`` for either ``"claude"`` or ``"claude:model"``."""
    if ':' not in raw:
        return raw.strip().lower(), None
    key = BackendKey.parse(raw)
    return key.provider, key.model
