import copy
import itertools
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from shopassist.core.errors import GenerationError
from shopassist.domain.models.product import Product
from shopassist.domain.repositories.expiring_record_repo import ComparisonCacheRepo, SimilarityCacheRepo


# ---- In-memory stand-in for a Motor collection ----

def _matches(doc, query):
    for field, cond in query.items():
        value = doc.get(field)
        if isinstance(cond, dict):
            for op, arg in cond.items():
                if op == "$gt" and not (value is not None and value > arg):
                    return False
                if op == "$lte" and not (value is not None and value <= arg):
                    return False
        elif value != cond:
            return False
    return True


def _project(doc, projection):
    out = copy.deepcopy(doc)
    if projection and projection.get("_id") == 0:
        out.pop("_id", None)
    return out


class _Cursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, field, direction=1):
        self._docs = sorted(self._docs, key=lambda d: d.get(field), reverse=direction == -1)
        return self

    def __aiter__(self):
        self._it = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._it)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """Just enough of AsyncIOMotorCollection for the repos under test."""

    def __init__(self):
        self.docs = []
        self.indexes = []
        self.fail_reads = False
        self.fail_writes = False
        self._ids = itertools.count(1)

    def _check(self, failing):
        if failing:
            raise ServerSelectionTimeoutError("mongo unavailable")

    async def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return kwargs.get("name", "idx")

    async def find_one(self, query, projection=None, sort=None):
        self._check(self.fail_reads)
        hits = [d for d in self.docs if _matches(d, query)]
        for field, direction in reversed(sort or []):
            hits.sort(key=lambda d: d.get(field), reverse=direction == -1)
        return _project(hits[0], projection) if hits else None

    def find(self, query, projection=None):
        self._check(self.fail_reads)
        return _Cursor([_project(d, projection) for d in self.docs if _matches(d, query)])

    async def insert_one(self, doc):
        self._check(self.fail_writes)
        doc["_id"] = next(self._ids)
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    async def delete_many(self, query):
        self._check(self.fail_writes)
        before = len(self.docs)
        self.docs = [d for d in self.docs if not _matches(d, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))


class FakeDB(dict):
    def __missing__(self, name):
        col = self[name] = FakeCollection()
        return col


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


# ---- Product lookup & generator doubles ----

def make_product(pid, name=None, category="audio", price=100, **kw):
    return Product(
        id=pid,
        name=name or f"Product {pid}",
        description=kw.pop("description", f"Description of product {pid}"),
        price=price,
        original_price=kw.pop("original_price", price + 20),
        category=category,
        rating=kw.pop("rating", 4),
        stock=kw.pop("stock", 10),
        **kw,
    )


class FakeProducts:
    def __init__(self, products):
        self.by_id = {p.id: p for p in products}
        self.list_calls = 0

    async def get_product_by_id(self, product_id):
        return self.by_id.get(product_id)

    async def get_products(self, category=None):
        self.list_calls += 1
        items = sorted(self.by_id.values(), key=lambda p: p.id)
        if category and category != "all":
            items = [p for p in items if p.category == category]
        return items


class FakeGenerator:
    """Returns queued answers in order; raises if an answer is an exception."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    async def generate(self, prompt, *, system=None, max_tokens=None):
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens})
        if not self.answers:
            raise GenerationError("no answer queued")
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


# ---- Fixtures ----

@pytest.fixture
def clock():
    return Clock(datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db():
    return FakeDB()


@pytest.fixture
def similarity_cache(db, clock):
    return SimilarityCacheRepo(db, clock=clock)


@pytest.fixture
def comparison_cache(db, clock):
    return ComparisonCacheRepo(db, clock=clock)
