import copy
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from shopassist.core.errors import InvalidArgument, StorageError, UpstreamFormatError
from shopassist.domain.models.product import Product
from shopassist.domain.repositories.expiring_record_repo import ComparisonCacheRepo
from shopassist.domain.repositories.product_repo import ProductLookup
from shopassist.domain.services.cache_keys import CacheKeyBuilder
from shopassist.domain.services.constants import (
    DEFAULT_CACHE_TTL_S,
    DEFAULT_COMPARISON_MAX_TOKENS,
    FALLBACK_COMPARISON_POINTS,
    FALLBACK_RECOMMENDATION,
    FALLBACK_SUMMARY,
)
from shopassist.domain.services.llm_svc import Generator, parse_json_object
from shopassist.domain.services.prompts import COMPARISON_SYSTEM, comparison_prompt

logger = logging.getLogger(__name__)

# =============================================================================
#                               VALIDATION SCHEMA
# =============================================================================

class ComparisonEnvelope(BaseModel):
    """
    Minimal top-level shape required from the model:
      {"products": [...non-empty...], "comparison": {...}}
    Per-product fields are passed through untouched.
    """
    products: List[Any] = Field(..., min_length=1)
    comparison: Dict[str, Any]
    model_config = ConfigDict(extra="allow")


class ComparisonPoint(BaseModel):
    category: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


def _valid_points(value: Any) -> bool:
    if not isinstance(value, list) or not value:
        return False
    try:
        for v in value:
            ComparisonPoint.model_validate(v)
    except ValidationError:
        return False
    return True


def apply_ui_defaults(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill the top-level comparison text and decision factors when the model
    left them out or malformed. Lossy: the fallbacks are generic and say
    nothing about the compared products. Nothing else is touched.
    """
    comparison = payload["comparison"]
    summary = comparison.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        comparison["summary"] = FALLBACK_SUMMARY
    recommendation = comparison.get("recommendation")
    if not isinstance(recommendation, str) or not recommendation.strip():
        comparison["recommendation"] = FALLBACK_RECOMMENDATION
    if not _valid_points(comparison.get("comparisonPoints")):
        comparison["comparisonPoints"] = copy.deepcopy(list(FALLBACK_COMPARISON_POINTS))
    return payload


def validate_comparison(raw: str) -> Dict[str, Any]:
    """Parse + shape-check the model answer. Raises UpstreamFormatError."""
    parsed = parse_json_object(raw)
    try:
        ComparisonEnvelope.model_validate(parsed)
    except ValidationError as e:
        raise UpstreamFormatError(f"LLM comparison has an invalid shape: {e}", raw=raw) from e
    return apply_ui_defaults(parsed)

# =============================================================================
#                               RESOLVER
# =============================================================================

class ComparisonResolver:
    """
    Structured, scored comparison of two or more products, cached per
    (id set, preference prefix) key.
    """

    def __init__(
        self,
        *,
        products: ProductLookup,
        cache: ComparisonCacheRepo,
        generator: Generator,
        keys: Optional[CacheKeyBuilder] = None,
        ttl_s: int = DEFAULT_CACHE_TTL_S,
        max_tokens: int = DEFAULT_COMPARISON_MAX_TOKENS,
    ):
        self.products = products
        self.cache = cache
        self.generator = generator
        self.keys = keys or CacheKeyBuilder()
        self.ttl_s = ttl_s
        self.max_tokens = max_tokens

    async def _resolve(self, ids: Sequence[int]) -> List[Product]:
        found: List[Product] = []
        for pid in ids:
            p = await self.products.get_product_by_id(pid)
            if p:
                found.append(p)
            else:
                logger.info("comparison dropping unknown product_id=%s", pid)
        return found

    async def compare(self, product_ids: Sequence[int], user_preference: Optional[str] = None) -> Dict[str, Any]:
        t0 = time.perf_counter()
        ids = list(dict.fromkeys(int(pid) for pid in product_ids))  # distinct, input order
        if len(ids) < 2:
            raise InvalidArgument("At least 2 products are required for comparison")

        # ---- 1) Cache ---------------------------------------------------------
        cache_key = self.keys.comparison_key(ids, user_preference)
        try:
            entry = await self.cache.get_fresh(cache_key)
        except StorageError as e:
            logger.warning("comparison cache read failed, treating as miss: %s", e)
            entry = None
        if entry:
            logger.info("comparison cache_hit key=%s", cache_key)
            return entry.comparison_result
        logger.info("comparison cache_miss key=%s", cache_key)

        # ---- 2) Resolve products ----------------------------------------------
        products = await self._resolve(ids)
        if len(products) < 2:
            raise InvalidArgument(
                f"At least 2 existing products are required for comparison, found {len(products)} of {len(ids)}"
            )

        # ---- 3) Generate + validate -------------------------------------------
        pref = user_preference.strip() if user_preference and user_preference.strip() else None
        raw = await self.generator.generate(
            comparison_prompt(products, pref),
            system=COMPARISON_SYSTEM,
            max_tokens=self.max_tokens,
        )
        result = validate_comparison(raw)

        # ---- 4) Write-through ---------------------------------------------------
        try:
            await self.cache.upsert(
                cache_key,
                {
                    "product_ids": sorted(ids),
                    "user_preference": pref,
                    "comparison_result": result,
                },
                ttl=self.ttl_s,
            )
        except StorageError as e:
            logger.warning("comparison cache write failed, returning fresh result: %s", e)

        logger.info(
            "comparison done key=%s products=%s total_time=%.3fs",
            cache_key, len(result.get("products", [])), time.perf_counter() - t0,
        )
        return result
