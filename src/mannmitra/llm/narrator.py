"""
StepNarrator: bounded-latency step narration with a canned fallback.

The text generator is an external collaborator. It may be slow or fail;
a session must never block on it or abort because of it. Each call runs on
a small worker pool and waits at most `timeout_seconds`. Timeouts, errors
and empty output all fall back to the scripted text.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def generate(self, prompt: str) -> str:
        ...


class StepNarrator:
    """
    Wraps a TextGenerator with a timeout and fallback.

    With no generator the narrator runs in template mode and simply returns
    the fallback text.
    """

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        timeout_seconds: float = 20.0,
        max_workers: int = 4,
    ):
        self.generator = generator
        self.timeout_seconds = timeout_seconds
        self._pool: Optional[ThreadPoolExecutor] = None
        if generator is not None:
            self._pool = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="narrator"
            )
            logger.info(f"[Narrator] LLM narration enabled (timeout {timeout_seconds}s)")
        else:
            logger.info("[Narrator] No text generator configured, using templates")

    @property
    def is_available(self) -> bool:
        return self.generator is not None

    def narrate(self, prompt: str, fallback: str) -> str:
        if self.generator is None or self._pool is None:
            return fallback

        future = self._pool.submit(self.generator.generate, prompt)
        try:
            text = future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            logger.warning(
                f"[Narrator] Generation exceeded {self.timeout_seconds}s, using fallback"
            )
            return fallback
        except Exception as e:
            logger.warning(f"[Narrator] Generation failed ({type(e).__name__}: {e}), using fallback")
            return fallback

        text = (text or "").strip()
        if not text:
            logger.warning("[Narrator] Empty generation, using fallback")
            return fallback
        return text

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None
