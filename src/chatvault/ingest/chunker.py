"""Message chunker — greedy token-bounded packing of a transcript.

Each message is rendered as ``[role]: content`` and packed, in order, into
chunks of at most ``max_tokens`` tokens joined by blank lines. A message that
alone exceeds the limit flushes the current buffer and is cut into
consecutive ``max_tokens``-sized token slices, one chunk per slice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from chatvault.db.models import Message

DEFAULT_MAX_TOKENS = 500


class TokenCodec(Protocol):
    """Anything that can turn text into token ids and back."""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


@dataclass
class TextChunk:
    """A chunk before it is embedded and bound to a session."""

    content: str
    chunk_index: int


class MessageChunker:
    """Split an ordered list of messages into token-bounded text chunks.

    Args:
        codec: Tokenizer used for counting and for slicing oversized messages.
        max_tokens: Upper bound on tokens per chunk.
    """

    def __init__(self, codec: TokenCodec, max_tokens: int = DEFAULT_MAX_TOKENS) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        self.codec = codec
        self.max_tokens = max_tokens

    def count_tokens(self, text: str) -> int:
        return len(self.codec.encode(text))

    def chunk(self, messages: list[Message]) -> list[TextChunk]:
        """Return chunks in emission order with contiguous indices from 0."""
        texts: list[str] = []
        buffer: list[str] = []
        buffer_tokens = 0

        def flush() -> None:
            nonlocal buffer, buffer_tokens
            if buffer:
                texts.append("\n\n".join(buffer).strip())
            buffer = []
            buffer_tokens = 0

        for message in messages:
            rendered = message.render()
            tokens = self.codec.encode(rendered)
            n = len(tokens)

            if n > self.max_tokens:
                flush()
                texts.extend(self._split_tokens(tokens))
            elif not buffer:
                buffer = [rendered]
                buffer_tokens = n
            elif buffer_tokens + n <= self.max_tokens and (
                joined := self.count_tokens("\n\n".join([*buffer, rendered]))
            ) <= self.max_tokens:
                # The blank-line separator costs tokens too; keep the real count.
                buffer.append(rendered)
                buffer_tokens = joined
            else:
                flush()
                buffer = [rendered]
                buffer_tokens = n

        flush()

        return [
            TextChunk(content=text, chunk_index=i)
            for i, text in enumerate(t for t in texts if t)
        ]

    def _split_tokens(self, tokens: list[int]) -> list[str]:
        """Decode consecutive ``max_tokens`` windows of *tokens*.

        Multi-byte characters split across a window boundary can decode to
        slightly different text, so each piece is re-encoded and trimmed from
        the end until it fits.
        """
        pieces: list[str] = []
        for start in range(0, len(tokens), self.max_tokens):
            text = self.codec.decode(tokens[start : start + self.max_tokens]).strip()
            while text and self.count_tokens(text) > self.max_tokens:
                text = text[:-1].rstrip()
            pieces.append(text)
        return pieces
