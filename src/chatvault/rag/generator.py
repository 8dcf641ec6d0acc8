"""Text generator used by the summarizer, categorizer and query pipeline.

Pipelines receive a generator by injection so tests can substitute a fake.
"""

from __future__ import annotations

from chatvault.config import GenerationCfg
from chatvault.rag import llm_client


class LiteLLMGenerator:
    """Chat-completion generator routed through ``llm_client.complete``.

    Args:
        model: LiteLLM model string (provider/model format).
        temperature: Default sampling temperature.
        max_tokens: Default maximum output tokens.
    """

    def __init__(
        self,
        model: str = "openai/gpt-4.1-nano",
        temperature: float = 0.5,
        max_tokens: int = 1000,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, cfg: GenerationCfg) -> LiteLLMGenerator:
        return cls(model=cfg.model, temperature=cfg.temperature, max_tokens=cfg.max_tokens)

    async def generate(
        self,
        messages: list[dict],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Return the stripped completion for *messages*."""
        content = await llm_client.complete(
            model=self.model,
            messages=messages,
            max_tokens=max_tokens or self.max_tokens,
            temperature=self.temperature if temperature is None else temperature,
        )
        return content.strip()
