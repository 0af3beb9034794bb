import json

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenerator, FakeProducts, make_product
from shopassist.core.errors import GenerationError
from shopassist.domain.repositories.expiring_record_repo import ComparisonCacheRepo, SimilarityCacheRepo
from shopassist.domain.services.cache_keys import CacheKeyBuilder
from shopassist.domain.services.comparison_svc import ComparisonResolver
from shopassist.domain.services.similar_products_svc import SimilarityResolver
from shopassist.main import app

DAY = 24 * 3600

COMPARISON = {
    "products": [{"id": 1, "name": "Product 1"}, {"id": 2, "name": "Product 2"}],
    "comparison": {
        "summary": "Close call.",
        "recommendation": "Take 1.",
        "comparisonPoints": [
            {"category": "Price", "description": "1 is cheaper"},
            {"category": "Battery", "description": "2 lasts longer"},
            {"category": "Weight", "description": "1 is lighter"},
        ],
    },
}


@pytest.fixture
def services(db, clock):
    """Wire app.state the way lifespan does, with in-memory collaborators."""
    catalog = FakeProducts([make_product(i) for i in range(1, 6)])
    sim_gen, cmp_gen = FakeGenerator(), FakeGenerator()
    similarity_cache = SimilarityCacheRepo(db, clock=clock)
    comparison_cache = ComparisonCacheRepo(db, clock=clock)
    app.state.products = catalog
    app.state.similarity_cache = similarity_cache
    app.state.comparison_cache = comparison_cache
    app.state.cache_keys = CacheKeyBuilder()
    app.state.similarity_resolver = SimilarityResolver(products=catalog, cache=similarity_cache, generator=sim_gen)
    app.state.comparison_resolver = ComparisonResolver(
        products=catalog, cache=comparison_cache, generator=cmp_gen, max_tokens=500,
    )
    return {"sim_gen": sim_gen, "cmp_gen": cmp_gen, "db": db}


@pytest.fixture
def client(services):
    # no context manager: lifespan (Mongo/Redis connect) is not run
    return TestClient(app)


def test_similar_products(client, services):
    services["sim_gen"].answers.append(json.dumps({"similarProductIds": [2, 1]}))
    res = client.get("/products/1/similar", params={"max": 2})
    assert res.status_code == 200
    body = res.json()
    assert [p["id"] for p in body] == [3, 2]
    assert "originalPrice" in body[0]

    # served from cache the second time
    assert client.get("/products/1/similar", params={"max": 2}).json() == body
    assert len(services["sim_gen"].calls) == 1


def test_similar_unknown_product_is_404(client):
    res = client.get("/products/999/similar")
    assert res.status_code == 404
    assert res.json()["error"] == "not_found"


def test_similar_rejects_bad_max(client):
    assert client.get("/products/1/similar", params={"max": 0}).status_code == 422


def test_similar_bad_llm_answer_is_502(client, services):
    services["sim_gen"].answers.append("sorry, I cannot help")
    res = client.get("/products/1/similar")
    assert res.status_code == 502
    assert res.json()["error"] == "upstream_format"


def test_detailed_comparison(client, services):
    services["cmp_gen"].answers.append(json.dumps(COMPARISON))
    res = client.post("/products/detailed-comparison", json={"productIds": [2, 1]})
    assert res.status_code == 200
    assert res.json() == COMPARISON

    again = client.post("/products/detailed-comparison", json={"productIds": [1, 2], "userPreference": None})
    assert again.json() == COMPARISON
    assert len(services["cmp_gen"].calls) == 1


def test_detailed_comparison_needs_two_products(client):
    res = client.post("/products/detailed-comparison", json={"productIds": [1]})
    assert res.status_code == 400
    assert res.json()["error"] == "invalid_argument"


def test_detailed_comparison_generation_failure_is_503(client, services):
    services["cmp_gen"].answers.append(GenerationError("upstream down"))
    res = client.post("/products/detailed-comparison", json={"productIds": [1, 2]})
    assert res.status_code == 503
    assert res.json()["error"] == "generation_failed"


def test_invalidate_comparison(client, services):
    services["cmp_gen"].answers.extend([json.dumps(COMPARISON), json.dumps(COMPARISON)])
    client.post("/products/detailed-comparison", json={"productIds": [1, 2], "userPreference": "quiet"})

    res = client.delete("/cache/comparison", params={"productIds": [2, 1], "userPreference": "quiet"})
    assert res.status_code == 200
    assert res.json() == {"key": "comparison-1-2-quiet", "removed": 1}

    client.post("/products/detailed-comparison", json={"productIds": [1, 2], "userPreference": "quiet"})
    assert len(services["cmp_gen"].calls) == 2


def test_invalidate_similarity_and_purge(client, services, clock):
    services["sim_gen"].answers.append(json.dumps({"similarProductIds": [1]}))
    client.get("/products/1/similar")
    assert client.delete("/cache/similarity/1").json() == {"key": "1", "removed": 1}

    services["sim_gen"].answers.append(json.dumps({"similarProductIds": [1]}))
    client.get("/products/1/similar")
    clock.advance(days=8)
    assert client.post("/cache/purge").json() == {"similarity": 1, "comparison": 0}
