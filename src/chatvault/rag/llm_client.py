"""LiteLLM client wrapper with retry, backoff, and API key validation.

All LLM, embedding and tokenizer calls in ChatVault route through this module.
Network calls are async (``litellm.acompletion`` / ``litellm.aembedding``);
LiteLLM's built-in retry is used (``num_retries``, exponential backoff).
"""

from __future__ import annotations

import os

import litellm

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if bare)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def has_api_key(model: str) -> bool:
    """Return True if the API key *model*'s provider needs is present (or none is needed)."""
    env_var = _PROVIDER_ENV.get(provider_of(model))
    return env_var is None or bool(os.getenv(env_var))


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    if not has_api_key(model):
        provider = provider_of(model)
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {_PROVIDER_ENV[provider]} environment variable."
        )


async def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1000,
    temperature: float = 0.5,
    num_retries: int = 3,
) -> str:
    """Call litellm.acompletion() with retry/backoff. Returns the content string.

    Raises:
        litellm.exceptions.APIError: On persistent API failure after retries.
    """
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=num_retries,
    )
    return response.choices[0].message.content or ""


async def embed(model: str, text: str, num_retries: int = 2, **kwargs) -> list[float]:
    """Call litellm.aembedding() with retry/backoff. Returns the embedding vector."""
    response = await litellm.aembedding(
        model=model,
        input=[text],
        num_retries=num_retries,
        **kwargs,
    )
    return response.data[0]["embedding"]


class LiteLLMTokenCodec:
    """Token encoder/decoder backed by LiteLLM's tokenizer for *model*.

    OpenAI-family models use the tiktoken encoding LiteLLM bundles, so this
    works offline.
    """

    def __init__(self, model: str = "gpt-4o-mini") -> None:
        self.model = model

    def encode(self, text: str) -> list[int]:
        return list(litellm.encode(model=self.model, text=text))

    def decode(self, tokens: list[int]) -> str:
        return litellm.decode(model=self.model, tokens=tokens)
