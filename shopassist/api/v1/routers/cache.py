# shopassist/api/v1/routers/cache.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
import logging

from shopassist.api.deps import cache_keys_dep, comparison_cache_dep, similarity_cache_dep
from shopassist.api.v1.schemas.comparison import InvalidationResult, PurgeResult
from shopassist.core.errors import StorageError
from shopassist.domain.repositories.expiring_record_repo import ComparisonCacheRepo, SimilarityCacheRepo
from shopassist.domain.services.cache_keys import CacheKeyBuilder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["cache"])

# Storage errors are fatal here: these endpoints exist only to act on storage.

@router.delete("/similarity/{product_id}", response_model=InvalidationResult)
async def invalidate_similarity(
    product_id: int,
    cache: SimilarityCacheRepo = Depends(similarity_cache_dep),
):
    key = CacheKeyBuilder.similarity_key(product_id)
    try:
        removed = await cache.invalidate(key)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return InvalidationResult(key=str(key), removed=removed)


@router.delete("/comparison", response_model=InvalidationResult)
async def invalidate_comparison(
    product_ids: List[int] = Query(..., alias="productIds"),
    user_preference: Optional[str] = Query(None, alias="userPreference"),
    cache: ComparisonCacheRepo = Depends(comparison_cache_dep),
    keys: CacheKeyBuilder = Depends(cache_keys_dep),
):
    key = keys.comparison_key(product_ids, user_preference)
    try:
        removed = await cache.invalidate(key)
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return InvalidationResult(key=key, removed=removed)


@router.post("/purge", response_model=PurgeResult)
async def purge_expired(
    similarity: SimilarityCacheRepo = Depends(similarity_cache_dep),
    comparison: ComparisonCacheRepo = Depends(comparison_cache_dep),
):
    """Drop expired rows now instead of waiting for the Mongo TTL monitor."""
    try:
        res = PurgeResult(
            similarity=await similarity.purge_expired(),
            comparison=await comparison.purge_expired(),
        )
    except StorageError as e:
        raise HTTPException(status_code=503, detail=str(e))
    logger.info("cache purge similarity=%s comparison=%s", res.similarity, res.comparison)
    return res
