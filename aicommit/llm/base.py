"""LLM Base Classes and Shared Code"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from aicommit import COMMIT_TYPE_NAMES
from aicommit.git.inspector import DiffSummary
from aicommit.llm.catalog import ProviderSpec
from aicommit.prompts import PromptBuilder

TYPES_PATTERN = '|'.join(COMMIT_TYPE_NAMES)
_JUNK_RE = re.compile(r'^(diff --git |@@\s|[+-]{3}\s[ab]/|index [0-9a-f]|```)')


class ErrorKind(str, Enum):
    UNREACHABLE = "unreachable"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"
    MALFORMED_RESPONSE = "malformed_response"


TRANSIENT_KINDS = frozenset({ErrorKind.TIMEOUT, ErrorKind.RATE_LIMITED, ErrorKind.UNREACHABLE})


class BackendError(Exception):
    """Raised when a text-generation provider call fails."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind


@dataclass(frozen=True)
class GenerationRequest:
    """Everything one generation attempt needs. Built once per attempt."""
    diff: DiffSummary
    system_prompt: str
    provider: str
    model: str
    temperature: float = 0.1
    max_output_tokens: int = 150
    operator_context: str | None = None
    conventional_commits: bool = True

    def __post_init__(self):
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"temperature must be within [0, 2], got {self.temperature}")
        if self.max_output_tokens <= 0:
            raise ValueError(f"max_output_tokens must be positive, got {self.max_output_tokens}")


@dataclass(frozen=True)
class Success:
    """A complete candidate commit message."""
    message: str
    model: str = ""
    tokens_used: int = 0
    attempts: int = 1

    ok = True


@dataclass(frozen=True)
class Failure:
    """A generation that produced no usable message."""
    kind: ErrorKind
    detail: str
    attempts: int = 1

    ok = False


GenerationResult = Success | Failure


@dataclass
class Completion:
    """Raw provider output before cleanup and validation."""
    text: str
    tokens_used: int = 0
    cut_off: bool = False


def validate_commit_message(content: str) -> tuple[bool, str]:
    """Validate that a message starts with a conventional commit header."""
    if not content or len(content.strip()) < 10:
        return False, "Response too short"

    pattern = rf'^({TYPES_PATTERN})(\([^)]+\))?!?: \S'
    first_line = content.strip().split('\n')[0]

    if not re.match(pattern, first_line):
        return False, f"Missing conventional commit format. Got: {first_line[:50]}"

    return True, ""


def clean_commit_message(text: str) -> str:
    """Strip preambles, code fences and echoed diff output from a model response."""
    lines = text.strip().split('\n')
    start_idx = 0
    for i, line in enumerate(lines):
        if re.match(rf'^[`\s]*({TYPES_PATTERN})[\(!:]', line):
            start_idx = i
            break

    end_idx = len(lines)
    for i in range(start_idx + 1, len(lines)):
        if _JUNK_RE.match(lines[i]):
            end_idx = i
            break

    cleaned = '\n'.join(lines[start_idx:end_idx]).rstrip()
    lines = cleaned.split('\n')
    lines[0] = lines[0].strip('`').strip()

    return '\n'.join(lines).strip()


class GenerationBackend(ABC):
    """One provider's request/response exchange.

    Subclasses implement `_complete`, raising `BackendError` for anything that
    went wrong. `generate` turns that into a `GenerationResult` and guarantees
    a returned `Success` carries a whole, cleaned message.
    """

    def __init__(self, spec: ProviderSpec, api_key: str | None = None, base_url: str | None = None):
        self.spec = spec
        self.api_key = api_key
        self.base_url = base_url or spec.base_url
        self.prompt_builder = PromptBuilder()

    @property
    def name(self) -> str:
        return self.spec.name

    def list_models(self) -> list[str]:
        return list(self.spec.models)

    @abstractmethod
    def _complete(self, request: GenerationRequest, timeout: float) -> Completion:
        pass

    def generate(self, request: GenerationRequest, timeout: float) -> GenerationResult:
        try:
            completion = self._complete(request, timeout)
        except BackendError as e:
            return Failure(e.kind, str(e))

        if completion.cut_off:
            return Failure(
                ErrorKind.MALFORMED_RESPONSE,
                f"Response was cut off at max_tokens={request.max_output_tokens}; raise max_tokens",
            )

        message = clean_commit_message(completion.text)
        if not message:
            return Failure(ErrorKind.MALFORMED_RESPONSE, f"Empty response from {self.name}")

        if request.conventional_commits:
            is_valid, error = validate_commit_message(message)
            if not is_valid:
                return Failure(ErrorKind.MALFORMED_RESPONSE, error)

        return Success(message=message, model=request.model, tokens_used=completion.tokens_used)

    def _messages(self, request: GenerationRequest) -> list[dict[str, str]]:
        """Chat-style messages for providers that take a system turn inline."""
        return [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": self.prompt_builder.build(request)},
        ]
