# shopassist/api/v1/routers/similar.py
from fastapi import APIRouter, Depends, Query
import time
import logging

from shopassist.api.deps import similarity_resolver_dep
from shopassist.domain.services.constants import DEFAULT_MAX_SIMILAR
from shopassist.domain.services.similar_products_svc import SimilarityResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["similar"])

@router.get("/products/{product_id}/similar")
async def similar_products(
    product_id: int,
    max_results: int = Query(DEFAULT_MAX_SIMILAR, alias="max", ge=1, le=50),
    resolver: SimilarityResolver = Depends(similarity_resolver_dep),
):
    """
    Products similar to `product_id`.
    Pipeline: similarity cache (7 days) → small-catalog shortcut → LLM ranking → cache.
    """
    logger.info("Request: similar_products product_id=%s, max=%s", product_id, max_results)
    start_time = time.perf_counter()

    items = await resolver.find_similar(product_id, max_results=max_results)

    logger.info(
        "Response: similar_products product_id=%s, count=%s, elapsed_time=%.4fs",
        product_id, len(items), time.perf_counter() - start_time,
    )
    return [p.model_dump(by_alias=True, mode="json") for p in items]
