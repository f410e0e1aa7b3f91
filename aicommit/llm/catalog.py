"""Provider Catalog - the closed set of supported text-generation providers."""

from dataclasses import dataclass
from enum import Enum


class BackendKind(str, Enum):
    """Backend variants; each provider is served by exactly one."""
    OPENAI_COMPATIBLE = "openai_compatible"
    ANTHROPIC_COMPATIBLE = "anthropic_compatible"
    LOCAL_PROCESS = "local_process"
    TOKEN_EXCHANGE = "token_exchange"


@dataclass(frozen=True)
class ProviderSpec:
    """Static facts about one provider: transport family, models, credentials."""
    name: str
    kind: BackendKind
    models: tuple[str, ...]
    default_model: str
    base_url: str | None = None
    api_key_env: tuple[str, ...] = ()
    requires_key: bool = True
    discoverable: bool = False

    def accepts_model(self, model: str) -> bool:
        if self.discoverable:
            return bool(model)
        return model in self.models


PROVIDERS: dict[str, ProviderSpec] = {
    spec.name: spec for spec in (
        ProviderSpec(
            name="openai",
            kind=BackendKind.OPENAI_COMPATIBLE,
            models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"),
            default_model="gpt-4o-mini",
            api_key_env=("OPENAI_API_KEY",),
        ),
        ProviderSpec(
            name="anthropic",
            kind=BackendKind.ANTHROPIC_COMPATIBLE,
            models=(
                "claude-sonnet-4-20250514",
                "claude-3-5-sonnet-20241022",
                "claude-3-haiku-20240307",
                "claude-3-opus-20240229",
            ),
            default_model="claude-sonnet-4-20250514",
            api_key_env=("ANTHROPIC_API_KEY",),
        ),
        ProviderSpec(
            name="gemini",
            kind=BackendKind.OPENAI_COMPATIBLE,
            models=("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"),
            default_model="gemini-2.0-flash",
            base_url="https://generativelanguage.googleapis.com/v1beta/openai/",
            api_key_env=("GEMINI_API_KEY", "GOOGLE_API_KEY"),
        ),
        ProviderSpec(
            name="groq",
            kind=BackendKind.OPENAI_COMPATIBLE,
            models=("llama-3.1-8b-instant", "llama-3.1-70b-versatile", "mixtral-8x7b-32768"),
            default_model="llama-3.1-8b-instant",
            base_url="https://api.groq.com/openai/v1",
            api_key_env=("GROQ_API_KEY",),
        ),
        ProviderSpec(
            name="deepseek",
            kind=BackendKind.OPENAI_COMPATIBLE,
            models=("deepseek-chat", "deepseek-coder"),
            default_model="deepseek-chat",
            base_url="https://api.deepseek.com/v1",
            api_key_env=("DEEPSEEK_API_KEY",),
        ),
        ProviderSpec(
            name="xai",
            kind=BackendKind.OPENAI_COMPATIBLE,
            models=("grok-beta",),
            default_model="grok-beta",
            base_url="https://api.x.ai/v1",
            api_key_env=("XAI_API_KEY",),
        ),
        ProviderSpec(
            name="cohere",
            kind=BackendKind.OPENAI_COMPATIBLE,
            models=("command-r-plus", "command-r", "command-light"),
            default_model="command-r-plus",
            base_url="https://api.cohere.ai/compatibility/v1",
            api_key_env=("CO_API_KEY", "COHERE_API_KEY"),
        ),
        ProviderSpec(
            name="ollama",
            kind=BackendKind.LOCAL_PROCESS,
            models=("gpt-oss:20b",),
            default_model="gpt-oss:20b",
            base_url="http://localhost:11434",
            api_key_env=(),
            requires_key=False,
            discoverable=True,
        ),
        ProviderSpec(
            name="github",
            kind=BackendKind.TOKEN_EXCHANGE,
            models=("gpt-4.1", "gpt-4.1-mini", "gpt-4.1-nano"),
            default_model="gpt-4.1",
            base_url="https://api.githubcopilot.com",
            api_key_env=("GH_TOKEN", "GITHUB_TOKEN"),
            # Falls back to `gh auth token` at call time
            requires_key=False,
        ),
    )
}

PROVIDER_ALIASES = {
    "claude": "anthropic",
    "copilot": "github",
    "google": "gemini",
}


def canonical_provider(name: str) -> str | None:
    """Map a user-supplied provider name to a catalog key, or None if unknown."""
    key = name.strip().lower()
    key = PROVIDER_ALIASES.get(key, key)
    return key if key in PROVIDERS else None
