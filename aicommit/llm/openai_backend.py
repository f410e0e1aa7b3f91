"""OpenAI-compatible backend (OpenAI, Groq, DeepSeek, xAI, Gemini, Cohere)."""

import openai

from aicommit.llm.base import BackendError, Completion, ErrorKind, GenerationBackend, GenerationRequest


def classify_openai_error(e: openai.APIError) -> ErrorKind:
    """Map an OpenAI SDK exception onto a backend error kind."""
    if isinstance(e, openai.APITimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(e, openai.APIConnectionError):
        return ErrorKind.UNREACHABLE
    if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorKind.UNAUTHORIZED
    if isinstance(e, openai.RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(e, openai.APIStatusError):
        return ErrorKind.UNREACHABLE if e.status_code >= 500 else ErrorKind.INVALID_REQUEST
    return ErrorKind.MALFORMED_RESPONSE


class OpenAICompatibleBackend(GenerationBackend):
    """Chat-completions backend for any OpenAI-compatible endpoint."""

    _client: openai.OpenAI | None = None

    def _credential(self) -> str:
        if not self.api_key:
            env = " or ".join(self.spec.api_key_env) or "an API key"
            raise BackendError(ErrorKind.UNAUTHORIZED, f"No API key found for {self.name}. Set {env}.")
        return self.api_key

    def _default_headers(self) -> dict[str, str] | None:
        return None

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self._credential(),
                base_url=self.base_url,
                default_headers=self._default_headers(),
                max_retries=0,
            )
        return self._client

    def _complete(self, request: GenerationRequest, timeout: float) -> Completion:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=request.model,
                messages=self._messages(request),
                temperature=request.temperature,
                max_tokens=request.max_output_tokens,
                timeout=timeout,
            )
        except openai.APIError as e:
            raise BackendError(classify_openai_error(e), f"{self.name} API error: {e.message}")

        if not response.choices:
            raise BackendError(ErrorKind.MALFORMED_RESPONSE, f"No choices in {self.name} response")
        choice = response.choices[0]
        usage = response.usage
        return Completion(
            text=choice.message.content or "",
            tokens_used=usage.total_tokens if usage else 0,
            cut_off=choice.finish_reason == "length",
        )
