# shopassist/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Optional, List, Protocol
from motor.motor_asyncio import AsyncIOMotorDatabase
from shopassist.domain.models.product import Product

class ProductLookup(Protocol):
    async def get_product_by_id(self, product_id: int) -> Optional[Product]: ...
    async def get_products(self, category: Optional[str] = None) -> List[Product]: ...

class ProductRepo:
    """
    Read-only product lookup backed by the 'products' collection.
    The resolvers only ever call get_product_by_id / get_products.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def get_product_by_id(self, product_id: int) -> Optional[Product]:
        doc = await self.col.find_one({"id": product_id}, {"_id": 0})
        return Product.model_validate(doc) if doc else None

    async def get_products(self, category: Optional[str] = None) -> List[Product]:
        """
        All products in catalog order (ascending id).
        `category` of None or "all" means no filter.
        """
        query = {} if not category or category == "all" else {"category": category}
        cursor = self.col.find(query, {"_id": 0}).sort("id", 1)
        return [Product.model_validate(doc) async for doc in cursor]
