"""Exception hierarchy shared by the ingest and query pipelines.

Duplicates are not errors: ingestion reports them through
``IngestResult.duplicate``. Embedding-provider failures never reach this
module; the embedder recovers from them locally.
"""

from __future__ import annotations


class ChatVaultError(Exception):
    """Base class for all ChatVault pipeline errors."""


class ValidationError(ChatVaultError, ValueError):
    """Raised for missing or malformed input before any side effect happens."""


class RetrievalError(ChatVaultError):
    """Raised when the vector store cannot be queried.

    Distinct from an empty result set, which is not an error and walks the
    threshold ladder instead.
    """


class GenerationError(ChatVaultError):
    """Raised when the generation model fails to produce an answer."""
