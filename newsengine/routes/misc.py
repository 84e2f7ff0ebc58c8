"""
Miscellaneous routes: health check.
"""

from fastapi import APIRouter

from .. import __version__
from ..config import state

router = APIRouter(tags=["misc"])


@router.get("/health")
async def health_check() -> dict:
    """API health check."""
    return {
        "status": "ok",
        "version": __version__,
        "scheduler_running": bool(state.scheduler and state.scheduler.is_initialized()),
        "embeddings_enabled": state.embedding_provider is not None,
        "summarization_enabled": state.summarizer is not None,
    }
