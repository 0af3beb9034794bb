import re
from typing import Iterable, Optional

from shopassist.domain.services.constants import COMPARISON_KEY_PREFIX, KEY_SEPARATOR, PREFERENCE_PREFIX_LEN

_WHITESPACE_RE = re.compile(r"\s+")


class CacheKeyBuilder:
    """
    Deterministic cache keys for resolver results.

    Comparison keys look like ``comparison-1-2-3-quiet-and-light``: the distinct
    ids sorted ascending, then (when given) the first `preference_prefix_len`
    characters of the preference with whitespace runs collapsed to ``-``.

    The key is lossy on purpose: two preferences that only differ past the
    prefix, or only in whitespace, share a key.
    """

    def __init__(self, preference_prefix_len: int = PREFERENCE_PREFIX_LEN):
        if preference_prefix_len < 1:
            raise ValueError("preference_prefix_len must be positive")
        self.preference_prefix_len = preference_prefix_len

    def normalize_preference(self, user_preference: Optional[str]) -> Optional[str]:
        if not user_preference or not user_preference.strip():
            return None
        prefix = user_preference.strip()[: self.preference_prefix_len]
        return _WHITESPACE_RE.sub(KEY_SEPARATOR, prefix.strip())

    def comparison_key(self, product_ids: Iterable[int], user_preference: Optional[str] = None) -> str:
        ids = sorted(set(int(pid) for pid in product_ids))
        if not ids:
            raise ValueError("comparison_key needs at least one product id")
        key = COMPARISON_KEY_PREFIX + KEY_SEPARATOR + KEY_SEPARATOR.join(str(pid) for pid in ids)
        pref = self.normalize_preference(user_preference)
        if pref:
            key += KEY_SEPARATOR + pref
        return key

    @staticmethod
    def similarity_key(source_product_id: int) -> int:
        # similarity rows are looked up by the source product alone
        return int(source_product_id)
