# shopassist/api/v1/routers/comparison.py
from fastapi import APIRouter, Depends
import time
import logging

from shopassist.api.deps import comparison_resolver_dep
from shopassist.api.v1.schemas.comparison import ComparisonRequest
from shopassist.domain.services.comparison_svc import ComparisonResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["comparison"])

@router.post("/products/detailed-comparison")
async def detailed_comparison(
    body: ComparisonRequest,
    resolver: ComparisonResolver = Depends(comparison_resolver_dep),
):
    """
    Feature-by-feature comparison of 2+ products, optionally steered by a
    free-text preference. Served from cache for 7 days per (ids, preference).
    """
    logger.info(
        "Request: detailed_comparison product_ids=%s, has_preference=%s",
        body.product_ids, bool(body.user_preference),
    )
    start_time = time.perf_counter()

    result = await resolver.compare(body.product_ids, body.user_preference)

    logger.info(
        "Response: detailed_comparison product_ids=%s, elapsed_time=%.4fs",
        body.product_ids, time.perf_counter() - start_time,
    )
    return result
