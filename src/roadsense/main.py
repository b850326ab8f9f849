"""
RoadSense Main Application
==========================

FastAPI entry point for the drive analysis pipeline.

The recording subsystem posts each completed drive here. Analysis runs
in a worker thread so that concurrent drives do not block the event
loop; statistics merges are serialized by the store.

Endpoints:
    GET  /                              - Service information
    GET  /health                        - Liveness probe
    GET  /metrics                       - Pipeline counters
    POST /drives/analyze                - Analyze a completed drive
    GET  /statistics/heatmap            - Per-segment scores for a day/hour slice
    GET  /segments/{segment_id}/trend   - Weekly statistics for one segment
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from roadsense.config import load_config, setup_logging
from roadsense.congestion.statistics import InMemoryStatisticsStore
from roadsense.errors import RecordingValidationError
from roadsense.models.congestion import SegmentStatistics
from roadsense.models.input import AnalyzeDriveRequest
from roadsense.pipeline import AnalysisPipeline


logger = logging.getLogger(__name__)


settings = load_config()
setup_logging(settings)


# =============================================================================
# Global State
# =============================================================================

_pipeline: Optional[AnalysisPipeline] = None
_startup_time: float = time.time()


def get_pipeline() -> AnalysisPipeline:
    """Return the running pipeline, creating one outside of lifespan."""
    global _pipeline
    if _pipeline is None:
        _pipeline = AnalysisPipeline(settings, InMemoryStatisticsStore())
    return _pipeline


def _heatmap_entry(row: SegmentStatistics) -> dict:
    """Flatten a statistics row into a heatmap cell."""
    return {
        "segment_id": row.segment_id,
        "congestion_score": row.congestion_score,
        "event_count": row.event_count,
        "total_duration_ms": row.total_duration_ms,
        "avg_speed_mps": row.avg_speed_mps,
        "severity_breakdown": row.severity_breakdown(),
    }


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    global _pipeline, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    _pipeline = AnalysisPipeline(settings, InMemoryStatisticsStore())

    yield

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="RoadSense",
    description="Road roughness and congestion analysis for recorded drives",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": "RoadSense",
        "version": settings.service.version,
        "name": settings.service.name,
        "status": "running",
        "match_strategy": settings.matching.strategy.value,
        "merge_mode": settings.statistics.merge_mode.value,
    })


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness probe. Always 200 while the process is up."""
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Pipeline counters for observability."""
    return JSONResponse(get_pipeline().get_metrics())


@app.post("/drives/analyze")
async def analyze_drive(request: AnalyzeDriveRequest) -> JSONResponse:
    """
    Analyze one completed drive.

    Returns 422 when the recording or the segment catalog is malformed;
    nothing is merged into statistics in that case.
    """
    pipeline = get_pipeline()

    try:
        segments = request.to_segments()
    except ValidationError as e:
        logger.warning(f"Invalid segment catalog for drive {request.drive_id}: {e}")
        return JSONResponse(
            {"error": "invalid_segments", "detail": [err["msg"] for err in e.errors()]},
            status_code=422,
        )

    try:
        result = await asyncio.to_thread(
            pipeline.analyze, request.to_recording(), segments
        )
    except RecordingValidationError as e:
        return JSONResponse(
            {"error": "invalid_recording", "detail": e.errors},
            status_code=422,
        )

    return JSONResponse(result.to_dict())


@app.get("/statistics/heatmap")
async def heatmap(
    day_of_week: Optional[int] = Query(default=None, ge=0, le=6),
    hour_of_day: Optional[int] = Query(default=None, ge=0, le=23),
) -> JSONResponse:
    """Per-segment congestion scores for a day/hour slice."""
    rows = get_pipeline().store.heatmap(day_of_week=day_of_week, hour_of_day=hour_of_day)
    return JSONResponse({"heatmap": [_heatmap_entry(row) for row in rows]})


@app.get("/segments/{segment_id}/trend")
async def segment_trend(segment_id: str) -> JSONResponse:
    """Weekly statistics for one segment, oldest week first."""
    rows = get_pipeline().store.weekly_trend(segment_id)
    return JSONResponse({
        "segment_id": segment_id,
        "trend": [row.model_dump(mode="json") for row in rows],
    })


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "roadsense.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
