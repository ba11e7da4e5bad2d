"""
HTTP client for OpenAI-compatible /chat/completions endpoints.

Used as the text generator behind step narration. Any provider that speaks
the OpenAI chat format works (Groq, Mistral, Together, a local server).
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.1-8b-instant"

SYSTEM_PROMPT = (
    "You are MannMitra, a supportive mental-wellness companion for young "
    "people in India. You speak simply and warmly, mix in Hindi words when "
    "the user does, respect family and cultural context, and never diagnose "
    "or give medical advice."
)


class LLMAPIError(Exception):
    """Raised when the completion endpoint returns an error."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"LLM API error {status_code}: {message}")


@dataclass
class LLMClient:
    """
    Thin wrapper for /chat/completions with retries on transient errors.

    Configure via environment variables (or a .env file):
        LLM_API_KEY   API key (required)
        LLM_BASE_URL  API base URL
        LLM_MODEL     model name
        LLM_TIMEOUT   request timeout in seconds
    """

    api_key: str = ""
    model: str = ""
    base_url: str = ""
    timeout: float = 0.0
    max_retries: int = 2
    temperature: float = 0.6
    max_tokens: int = 300

    def __post_init__(self):
        self._load_dotenv()
        if not self.base_url:
            self.base_url = os.environ.get("LLM_BASE_URL", DEFAULT_BASE_URL).strip().rstrip("/")
        if not self.model:
            self.model = os.environ.get("LLM_MODEL", DEFAULT_MODEL).strip()
        if not self.timeout:
            try:
                self.timeout = float(os.environ.get("LLM_TIMEOUT", "15"))
            except ValueError:
                logger.warning("[LLMClient] Invalid LLM_TIMEOUT, using 15s")
                self.timeout = 15.0
        if not self.api_key:
            self.api_key = os.environ.get("LLM_API_KEY", "").strip()
        if not self.api_key:
            raise LLMAPIError(401, "No LLM_API_KEY found in env or .env file")

    def _load_dotenv(self) -> None:
        """Load the first .env file found into os.environ (existing vars win)."""
        for parent in [Path.cwd()] + list(Path(__file__).resolve().parents):
            env_path = parent / ".env"
            if not env_path.exists():
                continue
            for line in env_path.read_text().splitlines():
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key, value = key.strip(), value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value
            break

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _do_request(self, body: Dict[str, Any]) -> str:
        resp = requests.post(
            f"{self.base_url}/chat/completions",
            headers=self._headers(),
            json=body,
            timeout=self.timeout,
        )

        if resp.status_code == 200:
            data = resp.json()
            try:
                return data["choices"][0]["message"].get("content") or ""
            except (KeyError, IndexError, TypeError):
                raise LLMAPIError(502, f"Malformed completion payload: {data!r}")

        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After", "?")
            raise LLMAPIError(429, f"Rate limited (Retry-After: {retry_after}s)")

        raise LLMAPIError(resp.status_code, resp.text)

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Call /chat/completions and return the assistant's content.

        Client errors (4xx other than 429) fail immediately; rate limits,
        server errors, timeouts and connection errors are retried with
        exponential backoff. Raises LLMAPIError once retries are exhausted.
        """
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens if max_tokens is None else max_tokens,
        }

        last_error: Optional[LLMAPIError] = None
        for attempt in range(self.max_retries + 1):
            try:
                return self._do_request(body)
            except LLMAPIError as e:
                if 400 <= e.status_code < 500 and e.status_code != 429:
                    raise
                logger.warning(
                    f"[LLMClient] {e} (attempt {attempt + 1}/{self.max_retries + 1})"
                )
                last_error = e
            except requests.exceptions.Timeout:
                logger.warning(
                    f"[LLMClient] Request timed out (attempt {attempt + 1}/{self.max_retries + 1})"
                )
                last_error = LLMAPIError(408, "Request timed out")
            except requests.exceptions.ConnectionError as e:
                logger.warning(f"[LLMClient] Connection error: {e}")
                last_error = LLMAPIError(0, f"Connection error: {e}")

            if attempt < self.max_retries:
                time.sleep(2 ** attempt)

        raise last_error  # type: ignore[misc]

    def generate(self, prompt: str) -> str:
        """Single-turn generation: the TextGenerator interface used by the narrator."""
        return self.chat_completion([
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ])

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)
