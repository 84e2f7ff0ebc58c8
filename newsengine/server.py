"""
News Engine API Server

FastAPI application hosting the ingestion scheduler and endpoints for:
- Job status, history and manual triggers
- Feed and per-user refresh
- Settings cascade overrides
- Retention and cost reporting
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import config, state
from .database import Database
from .embeddings import get_embedding_provider_from_env
from .extraction import ContentExtractor
from .feeds import FeedParser
from .jobs import start_scheduler, stop_scheduler
from .providers import get_provider_from_env
from .routes import (
    feeds_router,
    jobs_router,
    maintenance_router,
    misc_router,
    users_router,
)
from .summarizer import Summarizer

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup application resources."""
    logging.getLogger("newsengine").setLevel(config.LOG_LEVEL.upper())

    # Startup - skip if already initialized (e.g., by tests)
    if state.db is None:
        state.db = Database(config.DB_PATH)
        state.feed_parser = FeedParser(timeout=config.FETCH_TIMEOUT)
        state.extractor = ContentExtractor(timeout=config.FETCH_TIMEOUT)

        state.embedding_provider = get_embedding_provider_from_env(
            provider=config.EMBEDDING_PROVIDER or None,
            model=config.EMBEDDING_MODEL,
            openai_key=config.OPENAI_API_KEY or None,
            base_url=config.EMBEDDING_BASE_URL or None,
        )
        if state.embedding_provider is None:
            logger.warning("No embedding provider configured. Embeddings disabled.")

        # Initialize LLM provider (supports Anthropic, OpenAI)
        state.provider = get_provider_from_env(
            anthropic_key=config.ANTHROPIC_API_KEY or None,
            openai_key=config.OPENAI_API_KEY or None,
            preferred_provider=config.LLM_PROVIDER or None,
            default_model=config.LLM_MODEL or None,
        )
        if state.provider:
            state.summarizer = Summarizer(provider=state.provider)
            logger.info(f"LLM provider initialized: {state.provider.name}")
        else:
            logger.warning(
                "No LLM API key configured. Set ANTHROPIC_API_KEY or OPENAI_API_KEY. "
                "Summarization disabled."
            )

        state.scheduler = start_scheduler(
            state.db,
            state.feed_parser,
            extractor=state.extractor,
            embedding_provider=state.embedding_provider,
            summarizer=state.summarizer,
            enabled=config.ENABLE_CRON_JOBS,
        )
        reconciled = state.scheduler.reconcile_stale_runs()
        if reconciled:
            logger.info(f"Reconciled {reconciled} runs interrupted by a previous shutdown")

    yield

    # Shutdown
    stop_scheduler()


app = FastAPI(
    title="News Engine API",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(misc_router)
app.include_router(jobs_router)
app.include_router(feeds_router)
app.include_router(users_router)
app.include_router(maintenance_router)


def main():
    """Run the API server."""
    import uvicorn

    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="127.0.0.1", port=config.PORT)


if __name__ == "__main__":
    main()
