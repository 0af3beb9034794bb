# shopassist/api/v1/schemas/comparison.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional


class ComparisonRequest(BaseModel):
    """Body of POST /products/detailed-comparison (camelCase on the wire)."""
    product_ids: List[int] = Field(..., description="Ids of the products to compare (2 or more)")
    user_preference: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InvalidationResult(BaseModel):
    key: str
    removed: int


class PurgeResult(BaseModel):
    similarity: int
    comparison: int
