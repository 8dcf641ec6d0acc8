"""HTTP API.

Routes:
- POST   /ingest                       - Archive a transcript (idempotent per URL)
- POST   /ask                          - Answer a question from the archive
- GET    /sessions                     - List archived sessions
- DELETE /sessions/{session_id}        - Delete a session and its chunks
- PATCH  /sessions/{session_id}/favorite
- POST   /sessions/enhance-categories  - Re-score uncategorized sessions
- GET    /health

Every request opens its own database connection; pipelines are built per
request from the app's configuration.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from chatvault import __version__
from chatvault.config import ChatVaultConfig, load_config
from chatvault.db.connection import Database
from chatvault.db.models import Message
from chatvault.db.repository import Repository
from chatvault.errors import GenerationError, RetrievalError, ValidationError
from chatvault.ingest.categorizer import DEFAULT_CATEGORY, enhance_categories
from chatvault.ingest.pipeline import IngestionPipeline
from chatvault.rag.pipeline import QueryPipeline
from chatvault.services import build_ingestion_pipeline, build_query_pipeline

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageIn(BaseModel):
    role: str = Field(description="user | assistant | system")
    content: str = ""


class IngestRequest(BaseModel):
    title: str = ""
    url: str
    summary: str | None = None
    messages: list[MessageIn] = Field(default_factory=list)
    metadata: dict = Field(default_factory=dict)


class IngestResponse(_CamelModel):
    id: str
    duplicate: bool
    chunk_count: int = Field(alias="chunkCount")
    message: str


class AskRequest(BaseModel):
    query: str
    similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    limit: int | None = Field(default=None, ge=1, le=50)


class SourceOut(BaseModel):
    id: str
    title: str
    url: str
    similarity: float


class AskResponse(_CamelModel):
    answer: str
    summary: str | None = None
    sources: list[SourceOut]
    has_source_context: bool = Field(alias="hasSourceContext")
    fallback_answer: str | None = Field(default=None, alias="fallbackAnswer")


class SessionOut(_CamelModel):
    id: str
    title: str
    url: str
    summary: str
    created_at: str | None = Field(alias="createdAt")
    message_count: int = Field(alias="messageCount")
    favorite: bool
    main_category: str = Field(alias="mainCategory")


class FavoriteRequest(BaseModel):
    favorite: bool


class FavoriteResponse(BaseModel):
    id: str
    favorite: bool


class EnhanceRequest(_CamelModel):
    session_ids: list[str] | None = Field(default=None, alias="sessionIds")


class EnhanceResponse(BaseModel):
    enhanced: int
    errors: int
    total: int


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_config(request: Request) -> ChatVaultConfig:
    return request.app.state.config


def get_repo(config: ChatVaultConfig = Depends(get_config)) -> Iterator[Repository]:
    """Open the store for one request and close it afterwards."""
    conn = Database(config.database.path, config.embedding.dimensions).open()
    try:
        yield Repository(conn)
    finally:
        conn.close()


def get_ingestion_pipeline(
    config: ChatVaultConfig = Depends(get_config),
    repo: Repository = Depends(get_repo),
) -> IngestionPipeline:
    return build_ingestion_pipeline(config, repo)


def get_query_pipeline(
    config: ChatVaultConfig = Depends(get_config),
    repo: Repository = Depends(get_repo),
) -> QueryPipeline:
    return build_query_pipeline(config, repo)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    request: IngestRequest,
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),
) -> IngestResponse:
    """Archive one transcript.

    Raises:
        HTTPException(400): Missing/relative url, empty messages or unknown role.
    """
    try:
        messages = [Message.from_dict(m.model_dump()) for m in request.messages]
        result = await pipeline.ingest(
            url=request.url,
            title=request.title,
            summary=request.summary,
            messages=messages,
            metadata=request.metadata,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        # Unknown message role
        raise HTTPException(status_code=400, detail=str(e))

    message = (
        "This conversation is already archived."
        if result.duplicate
        else f"Archived with {result.chunk_count} chunks."
    )
    return IngestResponse(
        id=result.id,
        duplicate=result.duplicate,
        chunk_count=result.chunk_count,
        message=message,
    )


@router.post("/ask", response_model=AskResponse, response_model_exclude_none=True)
async def ask(
    request: AskRequest,
    pipeline: QueryPipeline = Depends(get_query_pipeline),
) -> AskResponse:
    """Answer a question from the archive.

    Raises:
        HTTPException(400): Empty query.
        HTTPException(503): Vector store unavailable.
        HTTPException(502): Generation model failed.
    """
    try:
        result = await pipeline.answer(
            request.query, threshold=request.similarity, limit=request.limit
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RetrievalError as e:
        logger.error("Retrieval failed: %s", e)
        raise HTTPException(status_code=503, detail="Search backend unavailable.")
    except GenerationError as e:
        logger.error("Generation failed: %s", e)
        raise HTTPException(status_code=502, detail="Answer generation failed.")

    return AskResponse(
        answer=result.answer,
        summary=result.summary,
        sources=[SourceOut(**s.to_dict()) for s in result.sources],
        has_source_context=result.has_source_context,
        fallback_answer=result.fallback_answer,
    )


@router.get("/sessions", response_model=list[SessionOut])
async def list_sessions(
    config: ChatVaultConfig = Depends(get_config),
    repo: Repository = Depends(get_repo),
) -> list[SessionOut]:
    sessions = repo.list_sessions(exclude_ids=config.retrieval.reserved_session_ids)
    return [
        SessionOut(
            id=s.id,
            title=s.title,
            url=s.url,
            summary=s.summary,
            created_at=s.created_at,
            message_count=s.message_count,
            favorite=bool(s.metadata.get("favorite", False)),
            main_category=s.metadata.get("mainCategory") or DEFAULT_CATEGORY,
        )
        for s in sessions
    ]


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, repo: Repository = Depends(get_repo)) -> Response:
    if not repo.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return Response(status_code=204)


@router.patch("/sessions/{session_id}/favorite", response_model=FavoriteResponse)
async def set_favorite(
    session_id: str,
    request: FavoriteRequest,
    repo: Repository = Depends(get_repo),
) -> FavoriteResponse:
    metadata = repo.update_metadata(session_id, {"favorite": request.favorite})
    if metadata is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return FavoriteResponse(id=session_id, favorite=metadata["favorite"])


@router.post("/sessions/enhance-categories", response_model=EnhanceResponse)
async def enhance(
    request: EnhanceRequest,
    config: ChatVaultConfig = Depends(get_config),
    repo: Repository = Depends(get_repo),
) -> EnhanceResponse:
    """Re-score the given sessions, or every non-reserved session when none are given."""
    if request.session_ids is None:
        ids = [
            s.id for s in repo.list_sessions(exclude_ids=config.retrieval.reserved_session_ids)
        ]
    else:
        ids = request.session_ids
    result = enhance_categories(repo, ids, batch_size=config.ingest.batch_size)
    return EnhanceResponse(enhanced=result.enhanced, errors=result.errors, total=result.total)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def create_app(config: ChatVaultConfig | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Loaded configuration; ``load_config()`` from the working
            directory when omitted.
    """
    app = FastAPI(
        title="ChatVault API",
        description="Archive chat transcripts and answer questions from them",
        version=__version__,
    )
    app.state.config = config or load_config()
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)
    return app
