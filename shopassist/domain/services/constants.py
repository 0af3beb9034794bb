# Defaults for the similarity / comparison resolvers.
DEFAULT_CACHE_TTL_DAYS = 7
DEFAULT_CACHE_TTL_S = DEFAULT_CACHE_TTL_DAYS * 24 * 3600

DEFAULT_MAX_SIMILAR = 3  # similar products returned when the caller does not say
DEFAULT_COMPARISON_MAX_TOKENS = 1500  # completion budget for one detailed comparison

# Cache key shape
COMPARISON_KEY_PREFIX = "comparison"
KEY_SEPARATOR = "-"
PREFERENCE_PREFIX_LEN = 50  # chars of the user preference folded into the key

# Comparison payload bounds (prompt instructions, not enforced on the answer)
MAX_KEY_FEATURES = 5
PROS_RANGE = (3, 5)
CONS_RANGE = (2, 3)
COMPARISON_POINTS_RANGE = (3, 4)

# UI fallbacks when the model leaves the top-level comparison text out
FALLBACK_SUMMARY = "No comparison summary available."
FALLBACK_RECOMMENDATION = "No recommendation available."
FALLBACK_COMPARISON_POINTS = (
    {"category": "Quality", "description": "Overall assessment of build and product quality"},
    {"category": "Price", "description": "Value delivered relative to the price"},
    {"category": "Features", "description": "Standout features of each product"},
)
