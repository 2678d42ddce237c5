"""Tests for the batching, retrying embedding client."""

from __future__ import annotations

import threading

import pytest

from reposcope.config import EmbeddingCfg
from reposcope.errors import EmbeddingProviderError, OperationCancelled
from reposcope.ingest.embedding_client import EmbeddingClient


class CountingProvider:
    """Embeds text i as [float(len(text))]; optionally fails the first N calls."""

    def __init__(self, failures: int = 0, exc: Exception | None = None) -> None:
        self.failures = failures
        self.exc = exc or ConnectionError("rate limited")
        self.calls: list[list[str]] = []

    def embed_batch(self, texts):
        self.calls.append(list(texts))
        if self.failures > 0:
            self.failures -= 1
            raise self.exc
        return [[float(len(t))] for t in texts]


def _client(provider, **kwargs):
    sleeps: list[float] = []
    kwargs.setdefault("inter_batch_delay", 0.2)
    client = EmbeddingClient(provider, sleep=sleeps.append, **kwargs)
    return client, sleeps


def test_empty_input_makes_no_calls():
    provider = CountingProvider()
    client, sleeps = _client(provider)
    assert client.embed([]) == []
    assert provider.calls == []
    assert sleeps == []


@pytest.mark.parametrize("count", [95, 96, 97, 192, 193])
def test_returns_one_vector_per_text_in_order(count):
    provider = CountingProvider()
    client, _ = _client(provider, batch_size=96)
    texts = ["x" * (i + 1) for i in range(count)]
    vectors = client.embed(texts)
    assert vectors == [[float(i + 1)] for i in range(count)]
    assert all(len(batch) <= 96 for batch in provider.calls)
    assert len(provider.calls) == -(-count // 96)


def test_inter_batch_delay_only_between_batches():
    provider = CountingProvider()
    client, sleeps = _client(provider, batch_size=2, inter_batch_delay=0.2)
    client.embed(["a", "b", "c", "d", "e"])
    assert sleeps == [0.2, 0.2]


def test_two_failures_then_success_makes_three_calls():
    provider = CountingProvider(failures=2)
    client, sleeps = _client(provider, max_retries=3, base_retry_delay=1.0)
    assert client.embed(["abc"]) == [[3.0]]
    assert len(provider.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_exhausted_retries_raise_chained_error():
    cause = TimeoutError("provider down")
    provider = CountingProvider(failures=10, exc=cause)
    client, sleeps = _client(provider, max_retries=3, base_retry_delay=0.5)
    with pytest.raises(EmbeddingProviderError) as excinfo:
        client.embed(["abc"])
    assert excinfo.value.__cause__ is cause
    assert excinfo.value.attempts == 4
    assert len(provider.calls) == 4
    assert sleeps == [0.5, 1.0, 2.0]


def test_wrong_vector_count_is_provider_error():
    class ShortProvider:
        def embed_batch(self, texts):
            return [[1.0]]

    client, _ = _client(ShortProvider(), max_retries=1)
    with pytest.raises(EmbeddingProviderError, match="vectors"):
        client.embed(["a", "b"])


def test_failed_batch_stops_later_batches():
    provider = CountingProvider(failures=100)
    client, _ = _client(provider, batch_size=1, max_retries=0)
    with pytest.raises(EmbeddingProviderError):
        client.embed(["a", "b", "c"])
    assert len(provider.calls) == 1


def test_cancel_before_first_batch():
    cancel = threading.Event()
    cancel.set()
    provider = CountingProvider()
    client = EmbeddingClient(provider, cancel=cancel)
    with pytest.raises(OperationCancelled):
        client.embed(["a"])
    assert provider.calls == []


def test_cancel_wakes_backoff_wait():
    cancel = threading.Event()
    provider = CountingProvider(failures=5)

    def fail_and_cancel(texts):
        cancel.set()
        raise ConnectionError("boom")

    provider.embed_batch = fail_and_cancel
    client = EmbeddingClient(provider, base_retry_delay=60.0, cancel=cancel)
    with pytest.raises(OperationCancelled):
        client.embed(["a"])


def test_embed_one():
    client, _ = _client(CountingProvider())
    assert client.embed_one("abcd") == [4.0]


def test_from_config_uses_rate_limit_settings():
    cfg = EmbeddingCfg(batch_size=10, inter_batch_delay=0.5, max_retries=1, base_retry_delay=2.0)
    client = EmbeddingClient.from_config(cfg, provider=CountingProvider())
    assert (client.batch_size, client.inter_batch_delay) == (10, 0.5)
    assert (client.max_retries, client.base_retry_delay) == (1, 2.0)


def test_invalid_batch_size_rejected():
    with pytest.raises(ValueError):
        EmbeddingClient(CountingProvider(), batch_size=0)
