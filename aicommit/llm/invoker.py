"""Generation Invoker - retry, backoff and deadline policy around one backend call."""

import threading
import time
from collections.abc import Callable

from aicommit.llm.base import (
    TRANSIENT_KINDS,
    BackendError,
    ErrorKind,
    Failure,
    GenerationBackend,
    GenerationRequest,
    GenerationResult,
    Success,
)
from aicommit.util.logging import get_logger

logger = get_logger(__name__)


class GenerationInvoker:
    """Calls a backend until it succeeds, fails fatally, or retries run out.

    Only TIMEOUT, RATE_LIMITED and UNREACHABLE are retried, with exponential
    backoff. Attempts never overlap: a retry waits for an overrunning call
    to return first. The invoker keeps no state between calls to `invoke`.
    """

    MAX_RETRIES = 2
    BACKOFF_BASE = 1.0
    # Extra wait past the per-attempt timeout before the attempt is abandoned
    DEADLINE_GRACE = 2.0

    def __init__(
        self,
        timeout: float = 60.0,
        max_retries: int = MAX_RETRIES,
        backoff_base: float = BACKOFF_BASE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._sleep = sleep

    def backoff(self, retry: int) -> float:
        """Delay before retry number `retry` (0-based)."""
        return self.backoff_base * (2 ** retry)

    def invoke(self, backend: GenerationBackend, request: GenerationRequest) -> GenerationResult:
        """Run attempts one after another; at most one call is in flight on `backend`."""
        attempts = 0
        while True:
            attempts += 1
            result, straggler = self._attempt(backend, request)

            if isinstance(result, Success):
                logger.debug("Generation succeeded on attempt %d", attempts)
                return Success(result.message, result.model, result.tokens_used, attempts=attempts)

            if result.kind not in TRANSIENT_KINDS or attempts > self.max_retries:
                if result.kind in TRANSIENT_KINDS:
                    logger.warning("Giving up after %d attempts: %s", attempts, result.detail)
                return Failure(result.kind, result.detail, attempts=attempts)

            if straggler is not None:
                # An overrunning call gets one more timeout to finish before a retry
                straggler.join(self.timeout)
                if straggler.is_alive():
                    logger.warning("Attempt %d is still running; not retrying", attempts)
                    return Failure(
                        result.kind,
                        f"{result.detail}; the call never returned, so it was not retried",
                        attempts=attempts,
                    )

            delay = self.backoff(attempts - 1)
            logger.warning(
                "Attempt %d/%d failed (%s): %s; retrying in %.1fs",
                attempts, self.max_retries + 1, result.kind.value, result.detail, delay,
            )
            self._sleep(delay)

    def _attempt(
        self,
        backend: GenerationBackend,
        request: GenerationRequest,
    ) -> tuple[GenerationResult, threading.Thread | None]:
        """One bounded call. A backend that overruns its deadline counts as TIMEOUT.

        The worker thread is a daemon. When the call overruns, the still
        running worker is returned alongside the failure and its eventual
        result is discarded.
        """
        results: list[GenerationResult] = []
        errors: list[Exception] = []

        def call():
            try:
                results.append(backend.generate(request, self.timeout))
            except BackendError as e:
                results.append(Failure(e.kind, str(e)))
            except Exception as e:
                errors.append(e)

        worker = threading.Thread(target=call, name="aicommit-generate", daemon=True)
        worker.start()
        worker.join(self.timeout + self.DEADLINE_GRACE)

        if errors:
            raise errors[0]
        if worker.is_alive() or not results:
            failure = Failure(ErrorKind.TIMEOUT, f"No response from {backend.name} within {self.timeout:g}s")
            return failure, (worker if worker.is_alive() else None)
        return results[0], None
