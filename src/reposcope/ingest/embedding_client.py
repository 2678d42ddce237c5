"""Rate-limited, retrying embedding client.

Texts are sent in sequential batches of ``batch_size``. A failing batch is
retried ``max_retries`` times with exponential backoff
(``base_retry_delay * 2**k``). Consecutive batches are separated by
``inter_batch_delay`` to stay under provider rate limits.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from reposcope.config import EmbeddingCfg
from reposcope.errors import EmbeddingProviderError, OperationCancelled
from reposcope.ingest.providers import EmbeddingProvider, LiteLLMProvider

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Embed any number of texts through an EmbeddingProvider.

    Args:
        provider: Backend that embeds one batch per call.
        batch_size: Maximum texts per provider call.
        inter_batch_delay: Seconds to wait between batches.
        max_retries: Retries per batch after the first attempt.
        base_retry_delay: Backoff base in seconds.
        sleep: Sleep function; overrides the cancellation-aware wait.
        cancel: Event that aborts the call with OperationCancelled when set.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        batch_size: int = 96,
        inter_batch_delay: float = 0.2,
        max_retries: int = 3,
        base_retry_delay: float = 1.0,
        sleep: Callable[[float], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self._provider = provider
        self.batch_size = batch_size
        self.inter_batch_delay = inter_batch_delay
        self.max_retries = max_retries
        self.base_retry_delay = base_retry_delay
        self._sleep = sleep
        self._cancel = cancel

    @classmethod
    def from_config(
        cls,
        cfg: EmbeddingCfg,
        provider: EmbeddingProvider | None = None,
        cancel: threading.Event | None = None,
    ) -> EmbeddingClient:
        return cls(
            provider if provider is not None else LiteLLMProvider(cfg.model),
            batch_size=cfg.batch_size,
            inter_batch_delay=cfg.inter_batch_delay,
            max_retries=cfg.max_retries,
            base_retry_delay=cfg.base_retry_delay,
            cancel=cancel,
        )

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order.

        Raises:
            EmbeddingProviderError: A batch still failed after all retries.
            OperationCancelled: The cancel event was set.
        """
        if not texts:
            return []

        vectors: list[list[float]] = []
        total = (len(texts) + self.batch_size - 1) // self.batch_size
        for index, start in enumerate(range(0, len(texts), self.batch_size)):
            if index > 0:
                self._pause(self.inter_batch_delay)
            self._check_cancelled()
            batch = texts[start : start + self.batch_size]
            logger.debug("Embedding batch %d/%d (%d texts)", index + 1, total, len(batch))
            vectors.extend(self._embed_batch_with_retry(batch))
        return vectors

    def bind_cancel(self, cancel: threading.Event) -> None:
        """Use *cancel* unless the client was built with its own event."""
        if self._cancel is None:
            self._cancel = cancel

    def embed_one(self, text: str) -> list[float]:
        return self.embed([text])[0]

    # ------------------------------------------------------------------
    # Retry logic
    # ------------------------------------------------------------------

    def _embed_batch_with_retry(self, batch: list[str]) -> list[list[float]]:
        last_exc: Exception | None = None
        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                delay = self.base_retry_delay * 2 ** (attempt - 1)
                logger.warning(
                    "Embedding batch failed (attempt %d/%d): %s; retrying in %.1fs",
                    attempt,
                    self.max_retries + 1,
                    last_exc,
                    delay,
                )
                self._pause(delay)
            try:
                vectors = self._provider.embed_batch(batch)
            except Exception as exc:
                last_exc = exc
                continue
            if len(vectors) != len(batch):
                last_exc = EmbeddingProviderError(
                    f"provider returned {len(vectors)} vectors for {len(batch)} texts"
                )
                continue
            return vectors

        raise EmbeddingProviderError(
            f"Embedding failed after {self.max_retries + 1} attempts: {last_exc}",
            attempts=self.max_retries + 1,
        ) from last_exc

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            if self._sleep is not None:
                self._sleep(seconds)
            elif self._cancel is not None:
                self._cancel.wait(seconds)
            else:
                time.sleep(seconds)
        self._check_cancelled()

    def _check_cancelled(self) -> None:
        if self._cancel is not None and self._cancel.is_set():
            raise OperationCancelled("embedding cancelled")
