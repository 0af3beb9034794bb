from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class SimilarityCacheEntry(BaseModel):
    """One ranked similarity answer for a source product."""
    source_product_id: int
    similar_product_ids: List[int]  # rank order
    created_at: datetime
    expires_at: datetime
    model_config = {"frozen": True}


class ComparisonCacheEntry(BaseModel):
    """One comparison payload for a normalized (id set, preference prefix) key."""
    cache_key: str = Field(..., min_length=1)
    product_ids: List[int]  # audit only, lookup goes through cache_key
    user_preference: Optional[str] = None
    comparison_result: Dict[str, Any]
    created_at: datetime
    expires_at: datetime
    model_config = {"frozen": True}
