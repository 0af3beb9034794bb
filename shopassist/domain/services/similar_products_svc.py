import logging
import time
from typing import Any, List, Optional, Sequence

from shopassist.core.errors import InvalidArgument, NotFound, StorageError, UpstreamFormatError
from shopassist.domain.models.product import Product
from shopassist.domain.repositories.expiring_record_repo import SimilarityCacheRepo
from shopassist.domain.repositories.product_repo import ProductLookup
from shopassist.domain.services.cache_keys import CacheKeyBuilder
from shopassist.domain.services.constants import DEFAULT_CACHE_TTL_S, DEFAULT_MAX_SIMILAR
from shopassist.domain.services.llm_svc import Generator, parse_json_object
from shopassist.domain.services.prompts import SIMILARITY_SYSTEM, similarity_prompt

logger = logging.getLogger(__name__)


def decode_positions(raw_positions: Any, candidates: Sequence[Product], max_results: int) -> List[Product]:
    """
    Map 1-based positions from the model back onto `candidates`.
    Out-of-range, non-integer and repeated positions are dropped; order is kept.
    """
    if not isinstance(raw_positions, list):
        raise UpstreamFormatError(f"similarProductIds must be a list, got {type(raw_positions).__name__}")

    picked: List[Product] = []
    seen = set()
    for pos in raw_positions:
        if isinstance(pos, bool):
            continue
        if isinstance(pos, float) and pos.is_integer():
            pos = int(pos)
        elif isinstance(pos, str):
            text = pos.strip()
            # ASCII only: int() rejects superscripts and friends that isdigit() accepts
            if text.isascii() and text.isdecimal():
                pos = int(text)
        if not isinstance(pos, int) or not 1 <= pos <= len(candidates) or pos in seen:
            logger.debug("similarity dropping position=%r (candidates=%s)", pos, len(candidates))
            continue
        seen.add(pos)
        picked.append(candidates[pos - 1])
        if len(picked) >= max_results:
            break
    return picked


class SimilarityResolver:
    """
    Up to `max_results` products similar to a source product.

    Flow: source lookup (NotFound) → fresh cache row → trivial small-catalog
    case → one LLM ranking over numbered candidates → write-through → return.
    """

    def __init__(
        self,
        *,
        products: ProductLookup,
        cache: SimilarityCacheRepo,
        generator: Generator,
        ttl_s: int = DEFAULT_CACHE_TTL_S,
    ):
        self.products = products
        self.cache = cache
        self.generator = generator
        self.ttl_s = ttl_s

    async def _from_cache(self, source_id: int, max_results: int) -> Optional[List[Product]]:
        try:
            entry = await self.cache.get_fresh(CacheKeyBuilder.similarity_key(source_id))
        except StorageError as e:
            logger.warning("similarity cache read failed, treating as miss: %s", e)
            return None
        if not entry or not entry.similar_product_ids:
            return None

        resolved: List[Product] = []
        for pid in entry.similar_product_ids:
            p = await self.products.get_product_by_id(pid)
            if p:
                resolved.append(p)
            else:
                logger.debug("similarity cached product_id=%s no longer in catalog", pid)
        return resolved[:max_results] or None

    async def find_similar(self, source_product_id: int, max_results: int = DEFAULT_MAX_SIMILAR) -> List[Product]:
        t0 = time.perf_counter()
        if max_results < 1:
            raise InvalidArgument(f"max_results must be a positive integer, got {max_results}")

        source = await self.products.get_product_by_id(source_product_id)
        if not source:
            raise NotFound(f"Product not found: {source_product_id}", product_id=source_product_id)

        # ---- 1) Cache ---------------------------------------------------------
        if cached := await self._from_cache(source.id, max_results):
            logger.info("similarity cache_hit product_id=%s items=%s", source.id, len(cached))
            return cached
        logger.info("similarity cache_miss product_id=%s max_results=%s", source.id, max_results)

        # ---- 2) Candidates (frozen snapshot, reused for decoding) -------------
        candidates = tuple(p for p in await self.products.get_products() if p.id != source.id)
        if len(candidates) <= max_results:
            logger.info("similarity trivial product_id=%s candidates=%s (no LLM, not cached)", source.id, len(candidates))
            return list(candidates)

        # ---- 3) LLM ranking over positions -------------------------------------
        raw = await self.generator.generate(
            similarity_prompt(source, candidates, max_results),
            system=SIMILARITY_SYSTEM,
        )
        parsed = parse_json_object(raw)
        if "similarProductIds" not in parsed:
            raise UpstreamFormatError("LLM response has no similarProductIds", raw=raw)

        # ---- 4) Positions → products ------------------------------------------
        similar = decode_positions(parsed["similarProductIds"], candidates, max_results)
        if not similar:
            raise InvalidArgument(
                f"No valid similar products for product_id={source.id} "
                f"(answer={parsed['similarProductIds']!r}, candidates={len(candidates)})"
            )

        # ---- 5) Write-through ---------------------------------------------------
        try:
            await self.cache.upsert(
                CacheKeyBuilder.similarity_key(source.id),
                {"similar_product_ids": [p.id for p in similar]},
                ttl=self.ttl_s,
            )
        except StorageError as e:
            logger.warning("similarity cache write failed, returning fresh result: %s", e)

        logger.info(
            "similarity done product_id=%s items=%s total_time=%.3fs",
            source.id, len(similar), time.perf_counter() - t0,
        )
        return similar
