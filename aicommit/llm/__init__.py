"""LLM Backend Package"""

from typing import TYPE_CHECKING

from aicommit.llm.base import (
    TRANSIENT_KINDS,
    BackendError,
    Completion,
    ErrorKind,
    Failure,
    GenerationBackend,
    GenerationRequest,
    GenerationResult,
    Success,
    clean_commit_message,
    validate_commit_message,
)
from aicommit.llm.catalog import PROVIDER_ALIASES, PROVIDERS, BackendKind, ProviderSpec, canonical_provider
from aicommit.llm.anthropic_backend import AnthropicBackend
from aicommit.llm.copilot_backend import CopilotBackend
from aicommit.llm.invoker import GenerationInvoker
from aicommit.llm.ollama_backend import OllamaBackend
from aicommit.llm.openai_backend import OpenAICompatibleBackend

if TYPE_CHECKING:
    from aicommit.config import SessionConfig

BACKENDS: dict[BackendKind, type[GenerationBackend]] = {
    BackendKind.OPENAI_COMPATIBLE: OpenAICompatibleBackend,
    BackendKind.ANTHROPIC_COMPATIBLE: AnthropicBackend,
    BackendKind.LOCAL_PROCESS: OllamaBackend,
    BackendKind.TOKEN_EXCHANGE: CopilotBackend,
}


def create_backend(config: "SessionConfig") -> GenerationBackend:
    """Build the backend for the session's (already validated) provider."""
    spec = PROVIDERS[config.provider]
    return BACKENDS[spec.kind](spec, api_key=config.api_key, base_url=config.base_url)


__all__ = [
    "TRANSIENT_KINDS",
    "BackendError",
    "Completion",
    "ErrorKind",
    "Failure",
    "GenerationBackend",
    "GenerationRequest",
    "GenerationResult",
    "Success",
    "clean_commit_message",
    "validate_commit_message",
    "PROVIDER_ALIASES",
    "PROVIDERS",
    "BackendKind",
    "ProviderSpec",
    "canonical_provider",
    "AnthropicBackend",
    "CopilotBackend",
    "OllamaBackend",
    "OpenAICompatibleBackend",
    "GenerationInvoker",
    "BACKENDS",
    "create_backend",
]
