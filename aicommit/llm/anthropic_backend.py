"""Anthropic-compatible backend (Claude models)."""

import anthropic

from aicommit.llm.base import BackendError, Completion, ErrorKind, GenerationBackend, GenerationRequest


def classify_anthropic_error(e: anthropic.APIError) -> ErrorKind:
    """Map an Anthropic SDK exception onto a backend error kind."""
    # APITimeoutError subclasses APIConnectionError, so test it first
    if isinstance(e, anthropic.APITimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(e, anthropic.APIConnectionError):
        return ErrorKind.UNREACHABLE
    if isinstance(e, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
        return ErrorKind.UNAUTHORIZED
    if isinstance(e, anthropic.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(e, anthropic.APIStatusError):
        return ErrorKind.UNREACHABLE if e.status_code >= 500 else ErrorKind.INVALID_REQUEST
    return ErrorKind.MALFORMED_RESPONSE


class AnthropicBackend(GenerationBackend):
    """Claude API backend. Authenticates with a static API key."""

    _client: anthropic.Anthropic | None = None

    def _get_client(self) -> anthropic.Anthropic:
        if not self.api_key:
            raise BackendError(
                ErrorKind.UNAUTHORIZED,
                "No API key found. Set ANTHROPIC_API_KEY or run:\n"
                "  ai-commit config set api_key '${ANTHROPIC_API_KEY}'",
            )
        if self._client is None:
            # Retries belong to GenerationInvoker, not the SDK
            self._client = anthropic.Anthropic(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    def _complete(self, request: GenerationRequest, timeout: float) -> Completion:
        client = self._get_client()
        try:
            response = client.messages.create(
                model=request.model,
                max_tokens=request.max_output_tokens,
                temperature=request.temperature,
                system=request.system_prompt,
                messages=[{"role": "user", "content": self.prompt_builder.build(request)}],
                timeout=timeout,
            )
        except anthropic.APIError as e:
            raise BackendError(classify_anthropic_error(e), f"Claude API error: {e.message}")

        text = "".join(block.text for block in response.content if block.type == "text")
        return Completion(
            text=text,
            tokens_used=response.usage.input_tokens + response.usage.output_tokens,
            cut_off=response.stop_reason == "max_tokens",
        )
