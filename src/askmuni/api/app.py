"""FastAPI application exposing the municipal question-answering service."""

from __future__ import annotations

import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable
from uuid import uuid4

import chromadb
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from askmuni.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    SearchMetadataModel,
    SourceModel,
)
from askmuni.config import ConfigurationError, Settings, get_settings
from askmuni.embeddings import (
    ChromaEmbeddingStore,
    EmbeddingConfig,
    EmbeddingStore,
    HuggingFaceEmbeddingBackend,
    QdrantHttpStore,
    VectorStoreError,
)
from askmuni.metrics.observability import bind_correlation_id, clear_correlation_id, configure_logging, get_logger
from askmuni.retrieval.service import RetrievalConfig, Retriever, TemporalRetriever
from askmuni.services.generation import (
    GenerationBackend,
    GenerationConfig,
    HuggingFaceChatGenerator,
    TemplateGenerator,
)
from askmuni.services.query import PromptBuilder, QueryService

CHAT_PATH = "/api/chat"
INVALID_MESSAGE = "Message manquant ou invalide"
_PROMPT_FIELDS = ("systemPrompt", "contextText", "userPrompt")


@dataclass(frozen=True)
class AppDependencies:
    store: EmbeddingStore
    retriever: Retriever
    query_service: QueryService


def _build_store(settings: Settings) -> EmbeddingStore:
    embedding_backend = HuggingFaceEmbeddingBackend(
        EmbeddingConfig(
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            provider=settings.embedding_provider,
            api_key=settings.huggingface_api_key,
            normalize=True,
        ),
    )
    if settings.vector_backend == "qdrant":
        return QdrantHttpStore(
            embedding_backend,
            settings.qdrant_url or "",
            collection_name=settings.qdrant_collection,
            api_key=settings.qdrant_api_key,
            timeout=settings.qdrant_timeout_seconds,
        )
    chroma_client = None
    if settings.chroma_host:
        chroma_client = chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    persist_directory = None if chroma_client or settings.is_test else settings.chroma_persist_dir
    return ChromaEmbeddingStore(
        embedding_backend,
        collection_name=settings.chroma_collection,
        client=chroma_client,
        persist_directory=persist_directory,
    )


def _build_generator(settings: Settings) -> GenerationBackend:
    if settings.generator_provider == "inference":
        return HuggingFaceChatGenerator(
            GenerationConfig(
                model=settings.generator_model,
                max_tokens=settings.generator_max_tokens,
                temperature=settings.generator_temperature,
                api_key=settings.huggingface_api_key,
            ),
        )
    return TemplateGenerator()


def _build_dependencies(settings: Settings) -> AppDependencies:
    store = _build_store(settings)
    retriever = TemporalRetriever(
        store,
        RetrievalConfig(vector_limit=settings.vector_limit, temporal=settings.temporal_config()),
    )
    query_service = QueryService(
        retriever=retriever,
        generator=_build_generator(settings),
        prompt_builder=PromptBuilder(),
        context_limit=settings.context_limit,
        pdf_base_path=settings.pdf_base_path,
    )
    return AppDependencies(store=store, retriever=retriever, query_service=query_service)


class RateLimiter:
    """Sliding-window request limiter keyed on client address and path."""

    def __init__(
        self,
        requests: int,
        window_seconds: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.requests = requests
        self.window = window_seconds
        self._clock = clock
        self._buckets: dict[str, deque[float]] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def __call__(self, request: Request) -> None:
        client_host = request.client.host if request.client else "unknown"
        key = f"{client_host}:{request.url.path}"
        now = self._clock()
        cutoff = now - self.window
        # Forget clients whose latest request left the window.
        for idle in [name for name, bucket in self._buckets.items() if not bucket or bucket[-1] < cutoff]:
            del self._buckets[idle]
        bucket = self._buckets.setdefault(key, deque())
        while bucket and bucket[0] < cutoff:
            bucket.popleft()
        if len(bucket) >= self.requests:
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Rate limit exceeded")
        bucket.append(now)


def create_app(*, settings: Settings | None = None, dependencies: AppDependencies | None = None) -> FastAPI:
    settings = settings or get_settings()
    deps = dependencies or _build_dependencies(settings)

    configure_logging()
    logger = get_logger("api")

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        app.state.dependencies.store.close()
        logger.info("store.closed")

    app = FastAPI(title="Mémoires municipales API", version="0.2.0", lifespan=lifespan)
    app.state.dependencies = deps

    # Optional CORS
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.cors_allow_origins),
            allow_credentials=settings.cors_allow_credentials,
            allow_methods=list(settings.cors_allow_methods),
            allow_headers=list(settings.cors_allow_headers),
        )

    @app.middleware("http")
    async def add_correlation_id(request: Request, call_next):  # type: ignore[override]
        correlation_id = request.headers.get("X-Request-ID", uuid4().hex)
        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_correlation_id()
        response.headers["X-Correlation-ID"] = correlation_id
        return response

    # Security dependencies
    def require_api_key(request: Request) -> None:
        expected = settings.api_key
        if not expected:
            return
        provided = request.headers.get("X-API-Key")
        if provided != expected:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    rate_limiter = RateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)

    def _correlation_id(request: Request) -> str:
        return getattr(request.state, "correlation_id", uuid4().hex)

    @app.exception_handler(ConfigurationError)
    async def handle_configuration_error(request: Request, exc: ConfigurationError) -> JSONResponse:
        correlation_id = _correlation_id(request)
        logger.error("configuration.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "correlation_id": correlation_id},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        if request.url.path != CHAT_PATH:
            return await request_validation_exception_handler(request, exc)
        # Unparseable JSON, a non-object body and a non-string message share one answer.
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": INVALID_MESSAGE, "correlation_id": _correlation_id(request)},
        )

    @app.exception_handler(VectorStoreError)
    async def handle_vector_store_error(request: Request, exc: VectorStoreError) -> JSONResponse:
        correlation_id = _correlation_id(request)
        logger.error("vector_store.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc), "correlation_id": correlation_id},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        correlation_id = _correlation_id(request)
        logger.error("unhandled.error", correlation_id=correlation_id, detail=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error", "correlation_id": correlation_id},
        )

    def get_dependencies(request: Request) -> AppDependencies:
        return request.app.state.dependencies

    def get_store(dep: AppDependencies = Depends(get_dependencies)) -> EmbeddingStore:
        return dep.store

    def get_query_service(dep: AppDependencies = Depends(get_dependencies)) -> QueryService:
        return dep.query_service

    @app.post(
        CHAT_PATH,
        response_model=ChatResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def chat(
        payload: ChatRequest,
        service: QueryService = Depends(get_query_service),
        _auth: None = Depends(require_api_key),
        _rl: None = Depends(rate_limiter),
    ) -> JSONResponse:
        message = (payload.message or "").strip()
        if not message:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_MESSAGE)
        settings.require_credentials()
        logger.info("chat.request", message_preview=message[:100])

        answer = service.answer(message)
        response = ChatResponse(
            answer=answer.text,
            sources=[SourceModel.from_source(source) for source in answer.sources],
            chunks_found=len(answer.chunks),
            search_metadata=SearchMetadataModel.from_metadata(answer.search_metadata),
            query_id=answer.query_id,
            latency_ms=answer.latency_ms,
            system_prompt=answer.system_prompt,
            context_text=answer.context_text,
            user_prompt=answer.user_prompt,
        )
        content = response.model_dump(mode="json", by_alias=True)
        if not settings.expose_prompts:
            for key in _PROMPT_FIELDS:
                content.pop(key, None)
        return JSONResponse(content=content, headers={"Cache-Control": "no-cache"})

    @app.api_route(CHAT_PATH, methods=["GET", "PUT", "DELETE", "PATCH"], include_in_schema=False)
    async def chat_method_not_allowed(request: Request) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            content={"detail": f"Méthode {request.method} non supportée. Utilisez POST."},
            headers={"Allow": "POST"},
        )

    @app.get("/metrics")
    async def metrics() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        from askmuni import __version__

        return {"status": "ok", "version": __version__, "environment": settings.environment}

    @app.head("/healthz")
    async def healthcheck_head() -> Response:
        return Response(status_code=status.HTTP_200_OK)

    @app.get("/livez")
    async def liveness() -> dict[str, str]:
        return {"status": "alive"}

    @app.get("/healthz/ready")
    async def readiness(store: EmbeddingStore = Depends(get_store)) -> dict[str, str]:
        try:
            _ = store.count()
            return {"status": "ready"}
        except Exception as exc:  # pragma: no cover
            return {"status": "error", "detail": str(exc)}

    return app


app = create_app()
