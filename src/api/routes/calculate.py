"""Calculate route: the primary API entry point."""

import logging
import time

from fastapi import APIRouter, BackgroundTasks, Depends

from src.api.deps import get_service
from src.api.responses import error_response, latency_ms, render
from src.api.schemas import (
    AddressRequest,
    CalculateData,
    CalculateMetadata,
    CalculateResponse,
    CalculationsResponse,
    PropertyResponse,
)
from src.data.resolver import TaxSavingsService, generate_request_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calculate"])


@router.post("/calculate")
@router.post("/", include_in_schema=False)
async def calculate_tax(
    req: AddressRequest,
    background_tasks: BackgroundTasks,
    service: TaxSavingsService = Depends(get_service),
):
    """Estimate tax savings for an address, from cache when fresh."""
    request_id = generate_request_id()
    started = time.perf_counter()
    logger.info("[%s] Calculate tax request received", request_id)

    try:
        result = await service.calculate(req.address, request_id)
    except Exception as e:
        return error_response(e, request_id, started)

    if result.needs_persist:
        # Runs after the response is sent; outcome only reaches the log
        logger.info("[%s] Saving data and calculations to cache (async)", request_id)
        background_tasks.add_task(
            service.persist, result.address, result.record, result.analysis, request_id
        )

    response = CalculateResponse(
        success=True,
        data=CalculateData(
            property=PropertyResponse.from_record(result.record),
            calculations=CalculationsResponse.from_analysis(result.analysis),
        ),
        metadata=CalculateMetadata(
            request_id=request_id,
            cache_hit=result.cache_hit,
            calculated_at=result.analysis.calculated_at,
            calculation_version=result.analysis.calculation_version,
            latency_ms=latency_ms(started),
        ),
    )
    if result.record.warnings:
        response.warnings = list(result.record.warnings)

    logger.info(
        "[%s] Calculate tax request completed: %s cache_hit=%s savings=%s warnings=%d (%dms)",
        request_id,
        result.address,
        result.cache_hit,
        result.analysis.potential_savings,
        len(result.record.warnings),
        response.metadata.latency_ms,
    )
    return render(response)
