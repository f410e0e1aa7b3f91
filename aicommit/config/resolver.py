"""Configuration Resolver - merge layered partial configs into one SessionConfig."""

import re
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any

from aicommit.git.diff_processor import MIN_BUDGET
from aicommit.llm.catalog import PROVIDERS, canonical_provider
from aicommit.prompts import DEFAULT_SYSTEM_PROMPT
from aicommit.util.logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "AI_COMMIT_"
_ENV_REF_RE = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')
_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class ConfigErrorKind(str, Enum):
    UNBOUND_VARIABLE = "unbound_variable"
    UNKNOWN_PROVIDER = "unknown_provider"
    INVALID_TEMPERATURE = "invalid_temperature"
    UNKNOWN_MODEL = "unknown_model"
    INVALID_VALUE = "invalid_value"
    MISSING_CREDENTIAL = "missing_credential"
    UNREADABLE_FILE = "unreadable_file"


class ConfigError(Exception):
    """Raised when configuration cannot be resolved into a valid SessionConfig."""

    def __init__(self, kind: ConfigErrorKind, message: str, field_name: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.field_name = field_name


@dataclass(frozen=True)
class SessionConfig:
    """Resolved, read-only settings for one session."""
    provider: str = "openai"
    model: str = ""
    api_key: str | None = field(default=None, repr=False)
    credential_source: str | None = None
    base_url: str | None = None
    temperature: float = 0.1
    max_tokens: int = 150
    timeout: float = 60.0
    auto_stage: bool = False
    conventional_commits: bool = True
    interactive: bool = True
    show_diff: bool = True
    diff_context: int = 3
    diff_budget: int = 16000
    editor: str | None = None
    system_prompt: str = field(default=DEFAULT_SYSTEM_PROMPT, repr=False)

    def redacted(self) -> dict[str, Any]:
        """Field values safe to display: the credential itself is never included."""
        data = asdict(self)
        data.pop("api_key")
        data["api_key"] = "(set)" if self.api_key else "(not set)"
        return data


# Fields a configuration layer may set; credential_source is derived
FIELD_TYPES: dict[str, type] = {
    f.name: f.type for f in fields(SessionConfig) if f.name != "credential_source"
}
_BOOL_FIELDS = {"auto_stage", "conventional_commits", "interactive", "show_diff"}
_INT_FIELDS = {"max_tokens", "diff_context", "diff_budget"}
_FLOAT_FIELDS = {"temperature", "timeout"}
_OPTIONAL_FIELDS = {"api_key", "base_url", "editor"}


def expand_env(value: str, environ: Mapping[str, str], field_name: str | None = None) -> str:
    """Substitute every ${NAME} in value; an unset NAME is an error, never left as-is."""

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in environ:
            where = f" in '{field_name}'" if field_name else ""
            raise ConfigError(
                ConfigErrorKind.UNBOUND_VARIABLE,
                f"Environment variable {name} referenced{where} is not set",
                field_name,
            )
        return environ[name]

    return _ENV_REF_RE.sub(replace, value)


def coerce_value(name: str, value: Any) -> Any:
    """Convert a layer value (JSON native or string) to the field's type."""
    def invalid(expected: str) -> ConfigError:
        return ConfigError(
            ConfigErrorKind.INVALID_VALUE,
            f"Invalid value for '{name}': {value!r} (expected {expected})",
            name,
        )

    if name in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
            return value.strip().lower() in _TRUE
        raise invalid("true or false")

    if name in _INT_FIELDS:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise invalid("an integer")

    if name in _FLOAT_FIELDS:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                pass
        raise invalid("a number")

    if not isinstance(value, str):
        raise invalid("a string")
    if name in _OPTIONAL_FIELDS and not value.strip():
        return None
    return value


def environment_layer(environ: Mapping[str, str]) -> dict[str, str]:
    """AI_COMMIT_<FIELD> variables as a partial config."""
    layer = {}
    for name in FIELD_TYPES:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            layer[name] = environ[key]
    return layer


def merge_layers(layers: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Field-by-field merge; later layers win, None means "not set"."""
    merged: dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if key not in FIELD_TYPES:
                logger.warning("Ignoring unknown config key '%s'", key)
                continue
            if value is not None:
                merged[key] = value
    return merged


def resolve(
    layers: Sequence[Mapping[str, Any]],
    environ: Mapping[str, str] | None = None,
    require_credentials: bool = True,
) -> SessionConfig:
    """Resolve layered partial configs into a validated SessionConfig.

    A pure function of its arguments: the environment snapshot is passed in
    rather than read from the process, so the same inputs always produce an
    equal result.

    Raises:
        ConfigError: on an unbound ${NAME}, unknown provider or model,
            out-of-range temperature, badly typed value, or (when
            require_credentials) a missing API key.
    """
    environ = environ if environ is not None else {}
    merged = merge_layers(layers)

    raw_api_key = merged.get("api_key")
    values: dict[str, Any] = {}
    for name, value in merged.items():
        if isinstance(value, str):
            value = expand_env(value, environ, name)
        values[name] = coerce_value(name, value)

    provider = canonical_provider(values.get("provider", SessionConfig.provider))
    if provider is None:
        raise ConfigError(
            ConfigErrorKind.UNKNOWN_PROVIDER,
            f"Unknown provider: {values['provider']}. Use one of: {', '.join(sorted(PROVIDERS))}",
            "provider",
        )
    spec = PROVIDERS[provider]
    values["provider"] = provider

    model = (values.get("model") or "").strip() or spec.default_model
    if not spec.accepts_model(model):
        raise ConfigError(
            ConfigErrorKind.UNKNOWN_MODEL,
            f"Unknown model '{model}' for {provider}. Available: {', '.join(spec.models)}",
            "model",
        )
    values["model"] = model

    temperature = values.get("temperature", SessionConfig.temperature)
    if not 0.0 <= temperature <= 2.0:
        raise ConfigError(
            ConfigErrorKind.INVALID_TEMPERATURE,
            f"Invalid temperature {temperature}. Must be between 0.0 and 2.0",
            "temperature",
        )

    _check_range(values, "max_tokens", 1)
    _check_range(values, "diff_context", 0)
    _check_range(values, "diff_budget", MIN_BUDGET)
    if values.get("timeout", SessionConfig.timeout) <= 0:
        raise ConfigError(ConfigErrorKind.INVALID_VALUE, "timeout must be greater than 0", "timeout")

    if values.get("api_key"):
        values["credential_source"] = raw_api_key if _ENV_REF_RE.search(raw_api_key) else "config file"
    else:
        for env_name in spec.api_key_env:
            if environ.get(env_name):
                values["api_key"] = environ[env_name]
                values["credential_source"] = f"${{{env_name}}}"
                break
    if require_credentials and spec.requires_key and not values.get("api_key"):
        names = " or ".join(spec.api_key_env)
        raise ConfigError(
            ConfigErrorKind.MISSING_CREDENTIAL,
            f"No API key for {provider}. Set {names}, or run: ai-commit config set api_key '${{{spec.api_key_env[0]}}}'",
            "api_key",
        )

    if provider == "ollama" and not values.get("base_url") and environ.get("OLLAMA_HOST"):
        host = environ["OLLAMA_HOST"]
        values["base_url"] = host if "://" in host else f"http://{host}"
    if values.get("base_url"):
        values["base_url"] = values["base_url"].rstrip("/")

    config = SessionConfig(**values)
    logger.debug("Resolved config: %r", config)
    return config


def _check_range(values: dict[str, Any], name: str, minimum: int) -> None:
    if name in values and values[name] < minimum:
        raise ConfigError(
            ConfigErrorKind.INVALID_VALUE,
            f"Invalid value for '{name}': {values[name]} (minimum {minimum})",
            name,
        )
