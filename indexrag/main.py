"""indexrag FastAPI application entry point.

Wires together all providers and services via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and
configures structured logging.

Startup (``bootstrap``) runs in the background so the API answers health
checks immediately:

  1. Create the SQLite tables and reset runs interrupted by a crash.
  2. Try to open the embedding store.
  3. Run the legacy-store migration if one is pending.
  4. Poll store readiness (30 x 1 s), then fall back to degraded mode.
  5. Re-embed if the embedding model changed, and sweep pending documents.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from indexrag import __version__
from indexrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from indexrag.api.routes import router as api_router
from indexrag.api.websocket import websocket_progress
from indexrag.config.loader import load_config
from indexrag.config.settings import Settings
from indexrag.interfaces.embedding_provider import IEmbeddingProvider
from indexrag.interfaces.llm_provider import ILLMProvider
from indexrag.interfaces.vector_store_provider import IVectorStoreProvider
from indexrag.models.embedding import recommendation_message, resolve_model, system_ram_gb
from indexrag.pipeline.orchestrator import DocumentProcessingPipeline
from indexrag.pipeline.progress_tracker import TaskRegistry
from indexrag.providers.cache.artifact_cache import ArtifactCache
from indexrag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from indexrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from indexrag.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)
from indexrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from indexrag.providers.llm.ollama_provider import OllamaLLMProvider
from indexrag.providers.llm.openai_provider import OpenAILLMProvider
from indexrag.providers.persistence.sqlite_document_repository import SQLiteDocumentRepository
from indexrag.providers.persistence.sqlite_settings_store import SQLiteSettingsStore
from indexrag.providers.vector_store.chromadb_provider import ChromaDBVectorStore
from indexrag.providers.vector_store.flat_provider import FlatVectorStore
from indexrag.services.context_builder import ContextBuilder
from indexrag.services.ingestion.chunker import TextChunker
from indexrag.services.migration_service import MigrationService
from indexrag.services.rag_engine import RAGEngine
from indexrag.services.transformation_service import TransformationService
from indexrag.utils.errors import ConfigurationError
from indexrag.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Return the provider named by ``LLM_PROVIDER``, else the first configured one.

    Priority order: Anthropic -> OpenAI -> Ollama (always constructible).
    """
    builders = {
        "anthropic": AnthropicLLMProvider,
        "openai": OpenAILLMProvider,
        "ollama": OllamaLLMProvider,
    }
    preferred = app_settings.llm_provider.strip().lower()
    if preferred:
        if preferred not in builders:
            raise ConfigurationError(
                message=f"Unknown LLM_PROVIDER '{app_settings.llm_provider}'",
                provider_name="config",
            )
        return builders[preferred](settings=app_settings)

    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Build the embedding provider for ``EMBEDDING_PROVIDER`` / ``EMBEDDING_MODEL``.

    Local providers resolve ``auto`` to a catalogue model sized for the
    machine's RAM.  FastEmbed does not ship every catalogue model; those
    fall back to sentence-transformers.
    """
    choice = app_settings.embedding_provider.strip().lower().replace("-", "_")

    if choice == "openai":
        provider = OpenAIEmbeddingProvider(settings=app_settings)
        if not provider.is_available():
            raise ConfigurationError(
                message="EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY",
                provider_name="config",
            )
        return provider

    if choice not in ("fastembed", "sentence_transformers"):
        raise ConfigurationError(
            message=f"Unknown EMBEDDING_PROVIDER '{app_settings.embedding_provider}'",
            provider_name="config",
        )

    ram_gb = system_ram_gb()
    try:
        model = resolve_model(app_settings.embedding_model, ram_gb=ram_gb)
    except ValueError as exc:
        raise ConfigurationError(
            message=f"Unknown EMBEDDING_MODEL '{app_settings.embedding_model}'",
            provider_name="config",
        ) from exc

    advice = recommendation_message(model, ram_gb)
    if advice:
        _logger.warning("embedding_model_ram_advice", model=model.value, advice=advice)

    if choice == "sentence_transformers" or not FastEmbedEmbeddingProvider.supports(model):
        return SentenceTransformerEmbeddingProvider(model=model)
    return FastEmbedEmbeddingProvider.for_model(model)


def _build_vector_store(
    app_settings: Settings, embedding_provider: IEmbeddingProvider
) -> IVectorStoreProvider:
    backend = app_settings.vector_backend.strip().lower()
    if backend == "chromadb":
        return ChromaDBVectorStore(
            embedding_provider=embedding_provider,
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
        )
    if backend == "flat":
        return FlatVectorStore(
            embedding_provider=embedding_provider,
            directory=app_settings.flat_store_dir,
        )
    raise ConfigurationError(
        message=f"Unknown VECTOR_BACKEND '{app_settings.vector_backend}'",
        provider_name="config",
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    chunking = app_config["chunking"]
    retrieval = app_config["retrieval"]
    cache_cfg = app_config["cache"]
    pipeline_cfg = app_config["pipeline"]
    migration_cfg = app_config["migration"]

    llm = _build_llm_provider(app_settings)
    embedding_provider = _build_embedding_provider(app_settings)
    vector_store = _build_vector_store(app_settings, embedding_provider)

    repository = SQLiteDocumentRepository(db_path=app_settings.database_path)
    settings_store = SQLiteSettingsStore(db_path=app_settings.database_path)
    task_registry = TaskRegistry()

    pipeline = DocumentProcessingPipeline(
        repository=repository,
        vector_store=vector_store,
        chunker=TextChunker(
            chunk_size=chunking["chunk_size"],
            overlap_size=chunking["overlap_size"],
        ),
        task_registry=task_registry,
        readiness_attempts=pipeline_cfg["readiness_attempts"],
        readiness_interval=pipeline_cfg["readiness_interval_seconds"],
        sweep_concurrency=pipeline_cfg["sweep_concurrency"],
    )

    context_builder = ContextBuilder(
        llm,
        max_chars_per_result=retrieval["max_chars_per_result"],
        max_context_chars=retrieval["max_context_chars"],
        direct_max_results=retrieval["direct_context_max_results"],
        batch_size=retrieval["summary_batch_size"],
    )
    rag_engine = RAGEngine(
        llm=llm,
        vector_store=vector_store,
        context_builder=context_builder,
        num_results=retrieval["num_results"],
        threshold=retrieval["threshold"],
    )

    cache = ArtifactCache(
        capacity=cache_cfg["capacity"],
        eviction_batch=cache_cfg["eviction_batch"],
    )
    transformation_service = TransformationService(
        llm=llm,
        cache=cache,
        task_registry=task_registry,
        max_chars_per_part=retrieval["max_context_chars"],
    )

    # The flat store is only "legacy" when ChromaDB is the active backend.
    legacy_path = (
        app_settings.flat_store_dir
        if app_settings.vector_backend.strip().lower() == "chromadb"
        else None
    )
    migration_service = MigrationService(
        repository=repository,
        pipeline=pipeline,
        settings_store=settings_store,
        legacy_path=legacy_path,
        grace_delay=migration_cfg["grace_delay_seconds"],
    )

    _logger.info(
        "components_built",
        llm=llm.get_provider_name(),
        embedding_provider=embedding_provider.get_provider_name(),
        embedding_model=embedding_provider.get_model_name(),
        vector_store=vector_store.get_provider_name(),
        database=app_settings.database_path,
    )

    return {
        "settings": app_settings,
        "llm": llm,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "repository": repository,
        "settings_store": settings_store,
        "task_registry": task_registry,
        "pipeline": pipeline,
        "rag_engine": rag_engine,
        "cache": cache,
        "transformation_service": transformation_service,
        "migration_service": migration_service,
    }


async def bootstrap(components: dict[str, Any]) -> bool:
    """Bring storage up, migrate, wait for readiness, and sweep.

    Returns ``True`` if the store became ready.  Never raises for a store
    that fails to initialize; the app then stays in degraded mode.
    """
    pipeline: DocumentProcessingPipeline = components["pipeline"]
    migration_service: MigrationService = components["migration_service"]
    embedding_provider: IEmbeddingProvider = components["embedding_provider"]

    await components["repository"].initialize()
    await components["settings_store"].initialize()
    await pipeline.recover_interrupted()

    # Before the store opens: a new model can change the vector dimension.
    await migration_service.reindex_if_model_changed(embedding_provider.get_model_name())
    await pipeline.initialize_store()
    await migration_service.run()

    ready = await pipeline.wait_until_ready()
    if not ready:
        return False

    scheduled = await pipeline.process_all_pending()
    _logger.info("bootstrap_complete", scheduled=scheduled)
    return True


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(components: dict[str, Any] | None, run_bootstrap: bool):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        built = components if components is not None else _build_all(settings, config)
        for key, value in built.items():
            setattr(application.state, key, value)

        bootstrap_task: asyncio.Task | None = None
        if run_bootstrap:
            bootstrap_task = asyncio.create_task(bootstrap(built))
        application.state.bootstrap_task = bootstrap_task

        _logger.info(
            "app_startup",
            version=__version__,
            environment=settings.app_env,
            llm=built["llm"].get_provider_name(),
        )

        yield

        if bootstrap_task is not None and not bootstrap_task.done():
            bootstrap_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await bootstrap_task
        pipeline: DocumentProcessingPipeline = built["pipeline"]
        await pipeline.cancel_all()
        await pipeline.drain()
        _logger.info("app_shutdown")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    components: dict[str, Any] | None = None,
    run_bootstrap: bool = True,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    components:
        Pre-built components (tests inject fakes); built from settings on
        startup when omitted.
    run_bootstrap:
        Start :func:`bootstrap` in the background on startup.
    """
    application = FastAPI(
        title="indexrag API",
        version=__version__,
        description=(
            "Index free-form text documents for semantic retrieval and answer "
            "questions against them with retrieval-augmented generation."
        ),
        lifespan=_make_lifespan(components, run_bootstrap),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)

    @application.websocket("/ws/progress")
    async def ws_progress(websocket: WebSocket) -> None:
        await websocket_progress(websocket)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "indexrag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
