from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

class Product(BaseModel):
    """
    Catalog product, read-only for the resolvers.
    Stored snake_case in Mongo, served camelCase (originalPrice, reviewCount...).
    Prices are integer currency units.
    """
    id: int
    name: str
    description: str = ""
    price: int
    original_price: int
    category: str
    rating: float = 0
    stock: int = 0
    image: Optional[str] = None
    slug: Optional[str] = None
    review_count: int = 0
    tag: Optional[str] = None
    is_featured: bool = False
    is_flash_sale: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        frozen=True,  # immuable = safe
        alias_generator=to_camel,
        populate_by_name=True,
    )
