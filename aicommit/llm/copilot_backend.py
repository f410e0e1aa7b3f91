"""GitHub Copilot backend: a GitHub token is exchanged for a short-lived Copilot token."""

import json
import subprocess
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass

from aicommit import __version__
from aicommit.llm.base import BackendError, Completion, ErrorKind, GenerationRequest
from aicommit.llm.openai_backend import OpenAICompatibleBackend
from aicommit.util.logging import get_logger

logger = get_logger(__name__)

TOKEN_URL = "https://api.github.com/copilot_internal/v2/token"
EDITOR_VERSION = f"ai-commit/{__version__}"
INTEGRATION_ID = "vscode-chat"


@dataclass
class CopilotToken:
    value: str
    expires_at: float

    def expired(self, margin: float = 30.0) -> bool:
        return time.time() + margin >= self.expires_at


class CopilotBackend(OpenAICompatibleBackend):
    """OpenAI-compatible chat against Copilot, authenticated by token exchange."""

    _token: CopilotToken | None = None

    def __init__(self, spec, api_key: str | None = None, base_url: str | None = None):
        super().__init__(spec, api_key=api_key, base_url=base_url)
        self._token_lock = threading.Lock()

    def _github_token(self) -> str:
        if self.api_key:
            return self.api_key
        try:
            result = subprocess.run(
                ['gh', 'auth', 'token'],
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError:
            raise BackendError(
                ErrorKind.UNAUTHORIZED,
                "GitHub CLI (gh) not found. Install it or set GH_TOKEN.",
            )
        except subprocess.CalledProcessError as e:
            raise BackendError(ErrorKind.UNAUTHORIZED, f"gh auth token failed: {e.stderr.strip()}")
        token = result.stdout.strip()
        if not token:
            raise BackendError(ErrorKind.UNAUTHORIZED, "gh returned an empty token. Run: gh auth login")
        return token

    def _exchange(self, timeout: float) -> CopilotToken:
        req = urllib.request.Request(
            TOKEN_URL,
            headers={
                "Authorization": f"token {self._github_token()}",
                "Accept": "application/json",
                "Editor-Version": EDITOR_VERSION,
            },
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout) as response:
                data = json.loads(response.read().decode('utf-8'))
        except urllib.error.HTTPError as e:
            if e.code in (401, 403, 404):
                raise BackendError(
                    ErrorKind.UNAUTHORIZED,
                    f"GitHub token was not accepted for Copilot ({e.code}). Check your Copilot subscription.",
                )
            if e.code == 429:
                raise BackendError(ErrorKind.RATE_LIMITED, "Copilot token exchange was rate limited")
            raise BackendError(ErrorKind.UNREACHABLE, f"Copilot token exchange failed ({e.code}): {e.reason}")
        except urllib.error.URLError as e:
            raise BackendError(ErrorKind.UNREACHABLE, f"Copilot token exchange failed: {e.reason}")
        except TimeoutError:
            raise BackendError(ErrorKind.TIMEOUT, f"Copilot token exchange timed out after {timeout:g}s")
        except OSError as e:
            raise BackendError(ErrorKind.UNREACHABLE, f"Copilot token exchange failed: {e}")
        except json.JSONDecodeError:
            raise BackendError(ErrorKind.MALFORMED_RESPONSE, "Invalid Copilot token response")

        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise BackendError(ErrorKind.MALFORMED_RESPONSE, "Copilot token response missing token value")
        expires_at = data.get("expires_at")
        if not isinstance(expires_at, (int, float)):
            expires_at = time.time() + 600
        logger.debug("Obtained Copilot token valid for %.0fs", expires_at - time.time())
        return CopilotToken(value=token, expires_at=float(expires_at))

    def _credential(self) -> str:
        # The openai client is rebuilt whenever the exchanged token is replaced
        return self._token.value if self._token else ""

    def _default_headers(self) -> dict[str, str]:
        return {"Editor-Version": EDITOR_VERSION, "Copilot-Integration-Id": INTEGRATION_ID}

    def _complete(self, request: GenerationRequest, timeout: float) -> Completion:
        # Token and client are replaced together, one refresh at a time
        with self._token_lock:
            if self._token is None or self._token.expired():
                self._token = self._exchange(timeout)
                self._client = None
                self._get_client()
        return super()._complete(request, timeout)
