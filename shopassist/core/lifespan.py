# shopassist/core/lifespan.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from shopassist.db import mongo, redis as r
from shopassist.core.config import get_settings
from shopassist.core.errors import StorageError
from shopassist.domain.repositories.expiring_record_repo import ComparisonCacheRepo, SimilarityCacheRepo
from shopassist.domain.repositories.product_repo import ProductRepo
from shopassist.domain.services.cache_keys import CacheKeyBuilder
from shopassist.domain.services.comparison_svc import ComparisonResolver
from shopassist.domain.services.llm_svc import OpenAIGenerator
from shopassist.domain.services.similar_products_svc import SimilarityResolver
from shopassist.utils.locks import KeyedLocks

logger = logging.getLogger(__name__)


async def build_services(app: FastAPI) -> None:
    """
    Wire the resolvers once per process and park them on app.state.
    The lock registry must be shared, so nothing here is built per request.
    """
    settings = get_settings()
    db = mongo.get_db()
    locks = KeyedLocks(r.get_redis(), ttl=settings.CACHE_LOCK_TTL_S)

    products = ProductRepo(db)
    similarity_cache = SimilarityCacheRepo(db, locks=locks)
    comparison_cache = ComparisonCacheRepo(db, locks=locks)
    for repo in (similarity_cache, comparison_cache):
        try:
            await repo.ensure_indexes(ttl_index=settings.CACHE_TTL_INDEX)
        except StorageError as e:
            logger.warning("Cache indexes not ensured (continuing without): %s", e)

    app.state.products = products
    app.state.similarity_cache = similarity_cache
    app.state.comparison_cache = comparison_cache
    app.state.cache_keys = CacheKeyBuilder(settings.PREFERENCE_PREFIX_LEN)
    app.state.similarity_resolver = SimilarityResolver(
        products=products,
        cache=similarity_cache,
        generator=OpenAIGenerator.from_settings(settings, model=settings.OPENAI_SIMILARITY_MODEL),
        ttl_s=settings.cache_ttl_seconds,
    )
    app.state.comparison_resolver = ComparisonResolver(
        products=products,
        cache=comparison_cache,
        generator=OpenAIGenerator.from_settings(settings, model=settings.OPENAI_COMPARISON_MODEL),
        keys=app.state.cache_keys,
        ttl_s=settings.cache_ttl_seconds,
        max_tokens=settings.COMPARISON_MAX_TOKENS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    # --- Startup ---
    await mongo.connect()
    if settings.REDIS_URL:
        await r.connect()
    else:
        logger.warning("No REDIS_URL provided, cache writes serialized per process only")

    await build_services(app)
    logger.info("%s ready (env=%s, cache_ttl_days=%s)", settings.APP_NAME, settings.APP_ENV, settings.CACHE_TTL_DAYS)

    yield

    # --- Shutdown ---
    await r.disconnect()
    await mongo.disconnect()
