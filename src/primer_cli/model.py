"""Local model client used as an opaque text generator.

Instruction generation only needs prompt in, text out; any failure is
reported as a single ModelError.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

log = logging.getLogger(__name__)

DEFAULT_MODEL = "qwen2.5-coder:7b"
OLLAMA_BASE_URL = "http://localhost:11434"
GENERATE_TIMEOUT = 300  # seconds per generation
PROBE_TIMEOUT = 5


class ModelError(Exception):
    """The model could not produce text."""


class TextGenerator(Protocol):
    model: str

    def generate(self, prompt: str, system: str = "") -> str: ...


class OllamaClient:
    """Text generation against an Ollama server's /api/generate endpoint."""

    def __init__(self, model: str = DEFAULT_MODEL, base_url: str = OLLAMA_BASE_URL):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=GENERATE_TIMEOUT)

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def is_running(self) -> bool:
        try:
            resp = self._client.get(f"{self.base_url}/api/tags", timeout=PROBE_TIMEOUT)
        except httpx.HTTPError:
            return False
        return resp.status_code == 200

    def generate(self, prompt: str, system: str = "", temperature: float = 0.3, max_tokens: int = 4096) -> str:
        """Return the model's completion for `prompt` as raw text."""
        body: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if system:
            body["system"] = system
        data = self._post("/api/generate", body)
        return data.get("response", "")

    def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        url = self.base_url + endpoint
        log.debug("POST %s model=%s", url, self.model)
        try:
            resp = self._client.post(url, json=body, timeout=GENERATE_TIMEOUT)
        except httpx.TimeoutException as e:
            raise ModelError(f"Model generation timed out after {GENERATE_TIMEOUT}s") from e
        except httpx.ConnectError as e:
            raise ModelError(f"Cannot connect to Ollama at {self.base_url}. Is it running? Try: ollama serve") from e
        except httpx.HTTPError as e:
            raise ModelError(f"Request to Ollama failed: {e}") from e

        if resp.status_code != 200:
            raise ModelError(f"Ollama returned {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as e:
            raise ModelError("Ollama returned a malformed response") from e

    def close(self) -> None:
        self._client.close()
