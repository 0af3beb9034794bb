from typing import Optional, Sequence

from shopassist.domain.models.product import Product
from shopassist.domain.services.constants import (
    COMPARISON_POINTS_RANGE,
    CONS_RANGE,
    MAX_KEY_FEATURES,
    PROS_RANGE,
)

SIMILARITY_SYSTEM = (
    "You are a product analysis assistant. Your job is to find similar products "
    "from the information provided. Return strict JSON only."
)

COMPARISON_SYSTEM = (
    "You are a product comparison expert. You analyse and compare products in detail, "
    "in simple and concise language. Return strict JSON only."
)


def _line(p: Product) -> str:
    return f"Name: {p.name}, Category: {p.category}, Price: {p.price}, Description: {p.description}"


def similarity_prompt(source: Product, candidates: Sequence[Product], max_results: int) -> str:
    """
    Candidates are numbered from 1 and the model answers with those positions,
    not product ids. Decode with the exact same `candidates` sequence.
    """
    listing = "\n".join(f"{i}. {_line(p)}" for i, p in enumerate(candidates, start=1))
    return (
        "Here is a product:\n"
        f"- Name: {source.name}\n"
        f"- Category: {source.category}\n"
        f"- Price: {source.price}\n"
        f"- Description: {source.description}\n\n"
        f"Below is a numbered list of other products. Pick at most {max_results} "
        "that are the most similar to the product above, most similar first:\n"
        f"{listing}\n\n"
        "Return the positions (numbers in the list) of the similar products as JSON:\n"
        '{"similarProductIds": [position_1, position_2, position_3]}\n\n'
        "Return only JSON, no explanation."
    )


def comparison_prompt(products: Sequence[Product], user_preference: Optional[str] = None) -> str:
    blocks = "\n".join(
        f"Product {i}:\n"
        f"- ID: {p.id}\n"
        f"- Name: {p.name}\n"
        f"- Current price: {p.price}\n"
        f"- Original price: {p.original_price}\n"
        f"- Category: {p.category}\n"
        f"- Description: {p.description}\n"
        for i, p in enumerate(products, start=1)
    )
    preference = f"The user has these preferences/requirements: {user_preference}\n\n" if user_preference else ""
    return (
        f"Compare the following products in detail:\n{blocks}\n"
        f"{preference}"
        "For each product provide:\n"
        "1. Brand (derived from the product name)\n"
        "2. Rating (1-5 stars, estimated from the information and the price)\n"
        f"3. Key features (at most {MAX_KEY_FEATURES}, taken from the description)\n"
        "4. Specs (weight, dimensions, battery life, connectivity... when the description has them)\n"
        "5. Estimated warranty period\n"
        f"6. Pros ({PROS_RANGE[0]}-{PROS_RANGE[1]} points)\n"
        f"7. Cons ({CONS_RANGE[0]}-{CONS_RANGE[1]} points)\n"
        "8. Best for (one specific kind of user)\n\n"
        "Also provide:\n"
        "1. An overall comparison summary\n"
        "2. Which product to choose and why\n"
        f"3. The {COMPARISON_POINTS_RANGE[0]}-{COMPARISON_POINTS_RANGE[1]} most important decision factors\n\n"
        "Return the result as JSON with this structure:\n"
        "{\n"
        '  "products": [\n'
        "    {\n"
        '      "id": product_id,\n'
        '      "name": "product name",\n'
        '      "price": current_price,\n'
        '      "originalPrice": original_price,\n'
        '      "brand": "brand",\n'
        '      "rating": rating,\n'
        '      "keyFeatures": ["feature 1", "feature 2"],\n'
        '      "specs": {"weight": "...", "dimensions": "...", "batteryLife": "...", "connectivity": "..."},\n'
        '      "warranty": "warranty period",\n'
        '      "pros": ["pro 1", "pro 2"],\n'
        '      "cons": ["con 1", "con 2"],\n'
        '      "bestFor": "ideal user",\n'
        '      "buyUrl": "/products/product-detail?id=product_id"\n'
        "    }\n"
        "  ],\n"
        '  "comparison": {\n'
        '    "summary": "comparison summary",\n'
        '    "recommendation": "recommendation",\n'
        '    "comparisonPoints": [{"category": "factor title", "description": "factor description"}]\n'
        "  }\n"
        "}"
    )
