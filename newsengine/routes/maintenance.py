"""
Maintenance routes: retention, cost ledger reports and enrichment toggles.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..auth import verify_api_key
from ..config import config, get_db, get_scheduler
from ..database import Database
from ..jobs import Scheduler
from ..schemas import (
    CleanupRequest,
    CleanupResponse,
    CostStatsResponse,
    EmbeddingStatsResponse,
    EnrichmentTogglesRequest,
    EnrichmentTogglesResponse,
)
from ..services import CostTrackerDep
from ..services.cost_tracker import EMBEDDING, SUMMARIZATION

router = APIRouter(
    tags=["maintenance"],
    dependencies=[Depends(verify_api_key)]
)


# ─────────────────────────────────────────────────────────────
# Retention
# ─────────────────────────────────────────────────────────────

@router.post("/cleanup")
async def run_cleanup(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)],
    request: CleanupRequest | None = None,
) -> CleanupResponse:
    """Apply retention now. Limits default to each feed's effective settings."""
    request = request or CleanupRequest()
    result = scheduler.cleanup_service.cleanup(
        feed_id=request.feed_id,
        user_id=request.user_id,
        max_age_days=request.max_age_days,
        max_articles_per_feed=request.max_articles_per_feed,
        preserve_starred=request.preserve_starred,
    )
    return CleanupResponse.from_result(result)


# ─────────────────────────────────────────────────────────────
# Costs
# ─────────────────────────────────────────────────────────────

@router.get("/costs/embeddings")
async def get_embedding_costs(tracker: CostTrackerDep) -> CostStatsResponse:
    return CostStatsResponse.from_stats(tracker.get_cost_stats(EMBEDDING))


@router.get("/costs/summarization")
async def get_summarization_costs(tracker: CostTrackerDep) -> CostStatsResponse:
    return CostStatsResponse.from_stats(tracker.get_cost_stats(SUMMARIZATION))


@router.get("/costs/report")
async def get_cost_report(
    tracker: CostTrackerDep,
    days: int = Query(default=30, ge=1, le=365),
) -> dict:
    """Daily cost breakdown for both operations."""
    return {
        EMBEDDING: tracker.get_cost_report(EMBEDDING, days),
        SUMMARIZATION: tracker.get_cost_report(SUMMARIZATION, days),
    }


# ─────────────────────────────────────────────────────────────
# Enrichment
# ─────────────────────────────────────────────────────────────

@router.get("/embeddings/stats")
async def get_embedding_stats(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)]
) -> EmbeddingStatsResponse:
    return EmbeddingStatsResponse(**scheduler.embedding_service.get_embedding_stats())


def _toggles(db: Database) -> EnrichmentTogglesResponse:
    return EnrichmentTogglesResponse(
        embedding_auto_generate=db.get_bool_setting(
            Database.EMBEDDING_AUTO_GENERATE_KEY, config.EMBEDDING_AUTO_GENERATE
        ),
        summary_auto_generate=db.get_bool_setting(
            Database.SUMMARY_AUTO_GENERATE_KEY, config.SUMMARY_AUTO_GENERATE
        ),
    )


@router.get("/settings/enrichment")
async def get_enrichment_toggles(
    db: Annotated[Database, Depends(get_db)]
) -> EnrichmentTogglesResponse:
    return _toggles(db)


@router.put("/settings/enrichment")
async def update_enrichment_toggles(
    request: EnrichmentTogglesRequest,
    db: Annotated[Database, Depends(get_db)]
) -> EnrichmentTogglesResponse:
    """Override the environment defaults for automatic enrichment."""
    if request.embedding_auto_generate is not None:
        db.set_setting(Database.EMBEDDING_AUTO_GENERATE_KEY, str(request.embedding_auto_generate).lower())
    if request.summary_auto_generate is not None:
        db.set_setting(Database.SUMMARY_AUTO_GENERATE_KEY, str(request.summary_auto_generate).lower())
    return _toggles(db)
