"""LiteLLM client wrapper with retry, timeouts, and API key validation.

All embedding, query-expansion and documentation calls route through this
module. LiteLLM's built-in retry is used (num_retries=3, exponential backoff).
Provider failures surface as ExternalProviderError.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import litellm

from repocontext.errors import ConfigurationError, ExternalProviderError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Provider prefix of a LiteLLM model string (``openai`` when absent)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        ConfigurationError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return  # No key required (e.g. ollama)

    if not os.getenv(env_var):
        raise ConfigurationError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


@dataclass
class Completion:
    """Text of a completion plus the token counts the provider reported."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


async def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 2048,
    temperature: float = 0.0,
    timeout: float | None = None,
    num_retries: int = 3,
) -> Completion:
    """Call litellm.acompletion() with retry/backoff.

    Args:
        model: LiteLLM model string (provider/model format).
        messages: OpenAI-style message list.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature (0 = deterministic).
        timeout: Per-request timeout in seconds.
        num_retries: Number of retries on transient errors (exponential backoff).

    Raises:
        ExternalProviderError: On persistent API failure after retries.
    """
    try:
        response = await litellm.acompletion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            num_retries=num_retries,
        )
    except Exception as exc:
        raise ExternalProviderError(provider_of(model), str(exc)) from exc

    try:
        text = response.choices[0].message.content or ""
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise ExternalProviderError(
            provider_of(model), f"Malformed completion response: {exc}"
        ) from exc
    usage = getattr(response, "usage", None)
    return Completion(
        text=text,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


async def embed(
    model: str,
    text: str,
    timeout: float | None = None,
    num_retries: int = 3,
) -> list[float]:
    """Call litellm.aembedding() with retry/backoff. Returns embedding vector.

    Raises:
        ExternalProviderError: On persistent API failure after retries.
    """
    try:
        response = await litellm.aembedding(
            model=model,
            input=[text],
            timeout=timeout,
            num_retries=num_retries,
        )
    except Exception as exc:
        raise ExternalProviderError(provider_of(model), str(exc)) from exc

    try:
        return list(response.data[0]["embedding"])
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise ExternalProviderError(
            provider_of(model), f"Malformed embedding response: {exc}"
        ) from exc


def count_tokens(model: str, text: str) -> int:
    """Count tokens in *text* for *model* using LiteLLM's provider-aware counter.

    Falls back to character-based approximation (4 chars ≈ 1 token) if the model
    is not supported by litellm.token_counter().
    """
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        logger.debug("token_counter unsupported for %s, using length estimate", model)
        return max(1, len(text) // 4)
