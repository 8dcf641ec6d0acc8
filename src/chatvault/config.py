"""ChatVault configuration loader.

Priority (high → low):
  1. CLI flags / request parameters  (handled at call site, not in this module)
  2. Environment variables  (CHATVAULT_DB, CHATVAULT_EMBEDDING_MODEL,
     CHATVAULT_EMBEDDING_MODE, CHATVAULT_GENERATION_MODEL)
  3. Per-project chatvault.yaml  (current working directory)
  4. Global ~/.chatvault/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".chatvault"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "chatvault.yaml"

# Built-in FAQ session; its chunks answer questions but are never cited.
FAQ_SESSION_ID = "1129f3aa-2e75-43a2-9cf0-6d08526cbcfb"

# Matches api_key, api-key, api_secret, *_token, token, *_secret, secret,
# password, passwd, credential(s). Does NOT match max_tokens_per_chunk.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "embedding", "generation", "ingest", "retrieval", "hooks"]
)

_EMBEDDING_MODES: frozenset[str] = frozenset(["live", "degraded"])
_EXPORT_HOOKS: frozenset[str] = frozenset(["none"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """SQLite store location (chatvault.yaml: database:)."""

    path: str = ".chatvault.db"


@dataclass
class EmbeddingCfg:
    """Embedding configuration (chatvault.yaml: embedding:).

    Attributes:
        model: LiteLLM embedding model string.
        dimensions: Vector size; must match the model's output.
        mode: 'live' calls the provider (pseudo-embedding on error);
            'degraded' never calls it and always uses the pseudo-embedding.
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    mode: str = "live"


@dataclass
class GenerationCfg:
    """LLM generation configuration (chatvault.yaml: generation:)."""

    model: str = "openai/gpt-4.1-nano"
    temperature: float = 0.5
    max_tokens: int = 1000


@dataclass
class IngestCfg:
    """Chunking and persistence configuration (chatvault.yaml: ingest:)."""

    max_tokens_per_chunk: int = 500
    batch_size: int = 10
    tokenizer_model: str = "gpt-4o-mini"


@dataclass
class RetrievalCfg:
    """Retrieval + answer configuration (chatvault.yaml: retrieval:).

    Attributes:
        threshold: Default similarity threshold for the first ladder step.
        limit: Default maximum number of chunks per search.
        floor: Fixed threshold of the last ladder step.
        low_confidence: Mean similarity below which an ungrounded fallback
            answer is also generated.
        max_sources: Number of sources returned with an answer.
        reserved_session_ids: Sessions never cited as sources.
    """

    threshold: float = 0.3
    limit: int = 10
    floor: float = 0.1
    low_confidence: float = 0.4
    max_sources: int = 3
    reserved_session_ids: list[str] = field(default_factory=lambda: [FAQ_SESSION_ID])


@dataclass
class HooksCfg:
    """Post-ingest capability hooks (chatvault.yaml: hooks:)."""

    export: str = "none"


@dataclass
class ChatVaultConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    hooks: HooksCfg = field(default_factory=HooksCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: ChatVaultConfig) -> None:
    """Raise ConfigError for values the pipelines cannot run with."""
    if cfg.embedding.mode not in _EMBEDDING_MODES:
        raise ConfigError(
            f"embedding.mode must be one of {sorted(_EMBEDDING_MODES)}, "
            f"got '{cfg.embedding.mode}'"
        )
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.ingest.max_tokens_per_chunk < 1:
        raise ConfigError(
            f"ingest.max_tokens_per_chunk must be >= 1, got {cfg.ingest.max_tokens_per_chunk}"
        )
    if cfg.ingest.batch_size < 1:
        raise ConfigError(f"ingest.batch_size must be >= 1, got {cfg.ingest.batch_size}")
    for name in ("threshold", "floor", "low_confidence"):
        value = getattr(cfg.retrieval, name)
        if not -1.0 <= value <= 1.0:
            raise ConfigError(f"retrieval.{name} must be in [-1, 1], got {value}")
    if cfg.retrieval.limit < 1:
        raise ConfigError(f"retrieval.limit must be >= 1, got {cfg.retrieval.limit}")
    if cfg.hooks.export not in _EXPORT_HOOKS:
        raise ConfigError(
            f"hooks.export must be one of {sorted(_EXPORT_HOOKS)}, got '{cfg.hooks.export}'"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> ChatVaultConfig:
    """Build a *ChatVaultConfig* from a merged raw YAML dict."""
    cfg = ChatVaultConfig()

    if "database" in data:
        d = data["database"] or {}
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            mode=str(e.get("mode", cfg.embedding.mode)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
            max_tokens=int(g.get("max_tokens", cfg.generation.max_tokens)),
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        cfg.ingest = IngestCfg(
            max_tokens_per_chunk=int(
                i.get("max_tokens_per_chunk", cfg.ingest.max_tokens_per_chunk)
            ),
            batch_size=int(i.get("batch_size", cfg.ingest.batch_size)),
            tokenizer_model=str(i.get("tokenizer_model", cfg.ingest.tokenizer_model)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(
            threshold=float(r.get("threshold", cfg.retrieval.threshold)),
            limit=int(r.get("limit", cfg.retrieval.limit)),
            floor=float(r.get("floor", cfg.retrieval.floor)),
            low_confidence=float(r.get("low_confidence", cfg.retrieval.low_confidence)),
            max_sources=int(r.get("max_sources", cfg.retrieval.max_sources)),
            reserved_session_ids=[
                str(s)
                for s in r.get("reserved_session_ids", cfg.retrieval.reserved_session_ids)
            ],
        )

    if "hooks" in data:
        h = data["hooks"] or {}
        cfg.hooks = HooksCfg(export=str(h.get("export", cfg.hooks.export)))

    return cfg


def _apply_env_overrides(cfg: ChatVaultConfig) -> ChatVaultConfig:
    """Apply CHATVAULT_* environment variable overrides."""
    if path := os.environ.get("CHATVAULT_DB"):
        cfg.database.path = path
    if model := os.environ.get("CHATVAULT_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if mode := os.environ.get("CHATVAULT_EMBEDDING_MODE"):
        cfg.embedding.mode = mode
    if model := os.environ.get("CHATVAULT_GENERATION_MODEL"):
        cfg.generation.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> ChatVaultConfig:
    """Load and return a merged *ChatVaultConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *chatvault.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If the global config contains API-key-like fields or a
            value is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
