"""Property routes: raw scrape data and cache version history."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from src.api.deps import get_service
from src.api.responses import error_response, latency_ms, render
from src.api.schemas import (
    AddressRequest,
    CalculationsResponse,
    HistoryResponse,
    HistoryVersionResponse,
    PropertyResponse,
    ScrapeMetadata,
    ScrapeResponse,
)
from src.config import settings
from src.data.resolver import TaxSavingsService, generate_request_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["properties"])


@router.post("/scrape")
@router.post("/scrape-property", include_in_schema=False)
async def scrape_property(req: AddressRequest, service: TaxSavingsService = Depends(get_service)):
    """Return scraped property data without a tax calculation."""
    request_id = generate_request_id()
    started = time.perf_counter()
    logger.info("[%s] Scrape property request received", request_id)

    try:
        result = await service.scrape(req.address, request_id)
    except Exception as e:
        return error_response(e, request_id, started)

    response = ScrapeResponse(
        success=True,
        data=PropertyResponse.from_record(result.record),
        metadata=ScrapeMetadata(
            request_id=request_id,
            cache_hit=result.cache_hit,
            scraped_at=result.scraped_at or datetime.now(timezone.utc),
            scrape_count=result.scrape_count,
            cache_ttl_days=settings.cache_ttl_days,
            latency_ms=latency_ms(started),
        ),
    )
    if result.record.warnings:
        response.warnings = list(result.record.warnings)

    logger.info(
        "[%s] Scrape property request completed: %s cache_hit=%s (%dms)",
        request_id, result.address, result.cache_hit, response.metadata.latency_ms,
    )
    return render(response)


@router.get("/properties/history")
async def get_property_history(
    address: str = Query(...),
    limit: int = Query(settings.history_limit, ge=1, le=100),
    service: TaxSavingsService = Depends(get_service),
):
    """Archived cache snapshots for an address, most recent first."""
    request_id = generate_request_id()
    try:
        versions = await service.history(address, limit)
    except Exception as e:
        return error_response(e, request_id)

    return render(HistoryResponse(
        success=True,
        data=[
            HistoryVersionResponse(
                version_id=v.version_id,
                scraped_at=v.entry.scraped_at,
                scrape_count=v.entry.scrape_count,
                property=PropertyResponse.from_record(v.entry.record),
                calculations=(
                    CalculationsResponse.from_analysis(v.entry.calculations)
                    if v.entry.calculations else None
                ),
            )
            for v in versions
        ],
    ))
