# shopassist/api/deps.py
from fastapi import Request
from shopassist.domain.repositories.expiring_record_repo import ComparisonCacheRepo, SimilarityCacheRepo
from shopassist.domain.services.cache_keys import CacheKeyBuilder
from shopassist.domain.services.comparison_svc import ComparisonResolver
from shopassist.domain.services.similar_products_svc import SimilarityResolver

# Everything below is built once in lifespan.build_services and shared across requests.

def similarity_resolver_dep(request: Request) -> SimilarityResolver:
    return request.app.state.similarity_resolver

def comparison_resolver_dep(request: Request) -> ComparisonResolver:
    return request.app.state.comparison_resolver

def similarity_cache_dep(request: Request) -> SimilarityCacheRepo:
    return request.app.state.similarity_cache

def comparison_cache_dep(request: Request) -> ComparisonCacheRepo:
    return request.app.state.comparison_cache

def cache_keys_dep(request: Request) -> CacheKeyBuilder:
    return request.app.state.cache_keys
