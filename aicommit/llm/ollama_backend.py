"""Ollama backend for locally hosted models."""

import http.client
import json
import socket
import urllib.error
import urllib.request

from aicommit.llm.base import BackendError, Completion, ErrorKind, GenerationBackend, GenerationRequest


class OllamaBackend(GenerationBackend):
    """Local model server. No authentication; an absent server is UNREACHABLE."""

    KEEP_ALIVE = "10m"
    CATALOG_TIMEOUT = 5

    def _unreachable(self) -> BackendError:
        return BackendError(
            ErrorKind.UNREACHABLE,
            f"Ollama not reachable at {self.base_url}. Start with: ollama serve",
        )

    def list_models(self) -> list[str]:
        """Models pulled into the local server, from /api/tags."""
        try:
            req = urllib.request.Request(f"{self.base_url}/api/tags")
            with urllib.request.urlopen(req, timeout=self.CATALOG_TIMEOUT) as response:
                data = json.loads(response.read().decode('utf-8'))
        except (urllib.error.URLError, OSError):
            raise self._unreachable()
        except json.JSONDecodeError:
            raise BackendError(ErrorKind.MALFORMED_RESPONSE, "Invalid model list from Ollama")
        return sorted(m.get('name', '') for m in data.get('models', []) if m.get('name'))

    def _call_api(self, request: GenerationRequest, timeout: float) -> dict:
        """Make a single non-streaming call to /api/generate."""
        payload = {
            "model": request.model,
            "prompt": self.prompt_builder.build(request),
            "system": request.system_prompt,
            "stream": False,
            "keep_alive": self.KEEP_ALIVE,
            "options": {
                "temperature": request.temperature,
                "num_predict": request.max_output_tokens,
            },
        }

        data = json.dumps(payload).encode('utf-8')
        req = urllib.request.Request(
            f"{self.base_url}/api/generate",
            data=data,
            headers={"Content-Type": "application/json"},
        )
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return json.loads(response.read().decode('utf-8'))

    def _complete(self, request: GenerationRequest, timeout: float) -> Completion:
        try:
            result = self._call_api(request, timeout)
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise BackendError(
                    ErrorKind.INVALID_REQUEST,
                    f"Model '{request.model}' not found. Run: ollama pull {request.model}",
                )
            if e.code >= 500:
                raise BackendError(ErrorKind.UNREACHABLE, f"Ollama error ({e.code}): {e.reason}")
            raise BackendError(ErrorKind.INVALID_REQUEST, f"Ollama error ({e.code}): {e.reason}")
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise BackendError(ErrorKind.TIMEOUT, f"Request timed out after {timeout:g}s")
            raise self._unreachable()
        except (socket.timeout, TimeoutError):
            raise BackendError(ErrorKind.TIMEOUT, f"Request timed out after {timeout:g}s")
        except json.JSONDecodeError:
            raise BackendError(ErrorKind.MALFORMED_RESPONSE, "Invalid response from Ollama")
        except http.client.HTTPException as e:
            raise BackendError(
                ErrorKind.MALFORMED_RESPONSE,
                f"Incomplete response from Ollama: {e}. The model may have run out of memory.",
            )
        except OSError as e:
            raise BackendError(ErrorKind.UNREACHABLE, f"Connection to Ollama lost: {e}")

        return Completion(
            text=result.get("response", ""),
            tokens_used=result.get("prompt_eval_count", 0) + result.get("eval_count", 0),
            cut_off=result.get("done_reason") == "length",
        )
