"""core.settings

Environment-sourced backend configuration.

Variables read (all optional):

==========================  =============================================
``DEFAULT_LLM_PROVIDER``    backend used when the caller names none
``ANTHROPIC_API_KEY``       enables ``claude``
``ANTHROPIC_BASE_URL``      endpoint override for ``claude``
``CLAUDE_MODEL``            model override for ``claude``
``OPENAI_API_KEY``          enables ``openai``
``OPENAI_BASE_URL``         endpoint override for ``openai``
``OPENAI_MODEL``            model override for ``openai``
``OLLAMA_HOST``             enables ``ollama`` and sets its endpoint
``OLLAMA_MODEL``            model override for ``ollama``
``LLM_TIMEOUT_SEC``         per-call deadline override for every backend
==========================  =============================================
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ticket_bridge.core.exceptions import MissingCredentialError, UnknownBackendError
from ticket_bridge.core.types import BackendConfig

logger = logging.getLogger(__name__)

CLAUDE = 'claude'
OPENAI = 'openai'
OLLAMA = 'ollama'

KNOWN_BACKENDS: tuple[str, ...] = (CLAUDE, OPENAI, OLLAMA)
FALLBACK_DEFAULT_BACKEND = OLLAMA
DEFAULT_OLLAMA_HOST = 'http://localhost:11434'

# backend -> env var(s) that must be populated for it to be usable
REQUIRED_KEYS: dict[str, tuple[str, ...]] = {
    CLAUDE: ('ANTHROPIC_API_KEY',),
    OPENAI: ('OPENAI_API_KEY',),
    OLLAMA: (),
}


class BackendSettings(BaseSettings):
    model_config = SettingsConfigDict(extra='ignore', frozen=True)

    default_llm_provider: str | None = None

    # Claude
    anthropic_api_key: SecretStr | None = None
    anthropic_base_url: str | None = None
    claude_model: str | None = None

    # OpenAI
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    openai_model: str | None = None

    # Ollama (no key; the host doubles as the "configured" marker)
    ollama_host: str | None = None
    ollama_model: str | None = None

    llm_timeout_sec: float | None = Field(None, gt=0.0)

    @property
    def default_backend(self) -> str:
        return (self.default_llm_provider or FALLBACK_DEFAULT_BACKEND).strip().lower()

    def backend_config(self, name: str) -> BackendConfig:
        """Return the `BackendConfig` for *name* as populated from the environment."""
        match name.lower():
            case 'claude':
                return BackendConfig(
                    api_key=self.anthropic_api_key,
                    model=self.claude_model or None,
                    base_url=self.anthropic_base_url or None,
                    timeout_sec=self.llm_timeout_sec,
                )
            case 'openai':
                return BackendConfig(
                    api_key=self.openai_api_key,
                    model=self.openai_model or None,
                    base_url=self.openai_base_url or None,
                    timeout_sec=self.llm_timeout_sec,
                )
            case 'ollama':
                return BackendConfig(
                    model=self.ollama_model or None,
                    base_url=self.ollama_host or DEFAULT_OLLAMA_HOST,
                    timeout_sec=self.llm_timeout_sec,
                )
        raise UnknownBackendError(f'Unknown LLM backend: {name}')

    def is_configured(self, name: str) -> bool:
        """Static check: are the credentials / endpoint for *name* populated?"""
        match name.lower():
            case 'claude':
                return _present(self.anthropic_api_key)
            case 'openai':
                return _present(self.openai_api_key)
            case 'ollama':
                return bool(self.ollama_host and self.ollama_host.strip())
        return False

    def available_backends(self) -> list[str]:
        return [name for name in KNOWN_BACKENDS if self.is_configured(name)]


def _present(secret: SecretStr | None) -> bool:
    return secret is not None and bool(secret.get_secret_value().strip())


def get_settings(*, dotenv: bool = True) -> BackendSettings:
    """Merge a local ``.env`` (without overriding real env vars) and read settings."""
    if dotenv:
        load_dotenv(override=False)
    return BackendSettings()


def validate_settings(settings: BackendSettings) -> None:
    """Fail fast on a misconfigured default backend; warn about the others.

    Raises
    ------
    ConfigurationError
        If ``DEFAULT_LLM_PROVIDER`` is unknown or its required key is missing.

    """
    default = settings.default_backend
    if default not in KNOWN_BACKENDS:
        raise UnknownBackendError(
            f'Invalid DEFAULT_LLM_PROVIDER={default!r}. Must be one of: {", ".join(KNOWN_BACKENDS)}'
        )

    if REQUIRED_KEYS[default] and not settings.is_configured(default):
        missing = ', '.join(REQUIRED_KEYS[default])
        raise MissingCredentialError(
            f'Missing {missing} for default backend {default!r}. '
            'Set it in your environment / .env file or change DEFAULT_LLM_PROVIDER.'
        )

    for name, keys in REQUIRED_KEYS.items():
        if name == default or not keys:
            continue
        if not settings.is_configured(name):
            logger.warning('%s not set - %r backend will be unavailable', ', '.join(keys), name)
