"""Post-ingest export hooks.

An export hook receives every newly archived session (never duplicates).
The ingestion pipeline awaits it after the chunks are written; hook errors
are logged by the pipeline and never fail the ingest.
"""

from __future__ import annotations

from typing import Protocol

from chatvault.config import HooksCfg
from chatvault.db.models import Session


class ExportHook(Protocol):
    async def on_ingested(self, session: Session, chunk_count: int) -> None: ...


class NullExportHook:
    """Default hook: does nothing."""

    async def on_ingested(self, session: Session, chunk_count: int) -> None:
        return None


def build_export_hook(cfg: HooksCfg) -> ExportHook:
    """Return the hook named by ``hooks.export``.

    Raises:
        ValueError: If the name is not a built-in hook.
    """
    if cfg.export == "none":
        return NullExportHook()
    raise ValueError(f"Unknown export hook '{cfg.export}' (built-in: none)")
