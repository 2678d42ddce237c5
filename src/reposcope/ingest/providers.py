"""Embedding providers.

Retries and pacing live in EmbeddingClient; a provider makes exactly one
request per call so the client's retry budget is the only one in play.
"""

from __future__ import annotations

import os
from typing import Protocol

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


class EmbeddingProvider(Protocol):
    """Anything that turns a batch of texts into one vector per text, in order."""

    def embed_batch(self, texts: list[str]) -> list[list[float]]: ...


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
}


def api_key_env_var(model: str) -> str | None:
    """Return the env var holding the API key for *model*'s provider, if any."""
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    if provider in _PROVIDER_ENV:
        return _PROVIDER_ENV[provider]
    return f"{provider.upper()}_API_KEY"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    if provider not in _PROVIDER_ENV:
        return  # unknown providers are left to litellm
    env_var = _PROVIDER_ENV[provider]
    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


class LiteLLMProvider:
    """Batch embeddings through ``litellm.embedding()``.

    The API key is checked once, at construction, so a missing key fails
    before any file is chunked.

    Args:
        model: LiteLLM embedding model string (provider/model format).

    Raises:
        EnvironmentError: If the provider's API key is not set.
    """

    def __init__(self, model: str) -> None:
        validate_api_key(model)
        self.model = model

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        response = litellm.embedding(model=self.model, input=texts)
        return [item["embedding"] for item in response.data]
