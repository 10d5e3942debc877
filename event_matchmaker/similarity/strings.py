"""
String-similarity primitives shared by scoring and deduplication.

All functions are pure, total (``None`` and empty strings are valid input)
and symmetric in their two arguments.  Edit distance comes from rapidfuzz.

Primitives
----------
string_similarity : normalized Levenshtein similarity in [0, 1].
token_overlap     : Jaccard overlap of word tokens longer than 2 chars.
partial_token_matches : count of long-token pairs where one contains the other.
email_similarity  : graded comparison of the local part and domain.
band_proximity    : ordinal distance between two bands, scaled by a step.
"""

from __future__ import annotations

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

_NON_WORD = re.compile(r"[\W_]+")

MIN_OVERLAP_TOKEN_LEN = 3     # token_overlap keeps tokens with len > 2
MIN_PARTIAL_TOKEN_LEN = 4     # partial matches consider tokens with len > 3


def normalize(text: Optional[str]) -> str:
    """Lower-case and drop every character that is not a letter or digit.

    Letters and digits of any script are kept, so ``"Café"`` becomes
    ``"café"`` and Arabic or CJK names survive intact.
    """
    if not text:
        return ""
    return _NON_WORD.sub("", text.lower())


def comparable(a: Optional[str], b: Optional[str]) -> bool:
    """True when both sides keep at least one letter or digit after normalizing."""
    return bool(normalize(a)) and bool(normalize(b))


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit cost for insert, delete and substitute."""
    return Levenshtein.distance(a, b)


def string_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Return ``1 - distance / max_len`` over the normalized strings.

    Two strings that normalize to the same value (including two empty
    strings) score 1.0.
    """
    na, nb = normalize(a), normalize(b)
    if na == nb:
        return 1.0
    max_len = max(len(na), len(nb))
    return 1.0 - levenshtein_distance(na, nb) / max_len


def tokenize(text: Optional[str], min_len: int = 1) -> set[str]:
    """Lower-cased word tokens of at least ``min_len`` characters."""
    if not text:
        return set()
    return {t for t in _NON_WORD.split(text.lower()) if len(t) >= min_len}


def token_overlap(a: Optional[str], b: Optional[str]) -> float:
    """Jaccard overlap ``|A ∩ B| / |A ∪ B|`` of tokens longer than 2 chars.

    Returns 0.0 when both token sets are empty.
    """
    ta = tokenize(a, MIN_OVERLAP_TOKEN_LEN)
    tb = tokenize(b, MIN_OVERLAP_TOKEN_LEN)
    union = ta | tb
    if not union:
        return 0.0
    return len(ta & tb) / len(union)


def partial_token_matches(a: Optional[str], b: Optional[str]) -> int:
    """Count token pairs (len > 3) where one token contains the other.

    ``"software"`` vs ``"software-defined networks"`` counts one match;
    ``"rapid"`` vs ``"api"`` does not (``"api"`` is too short).
    """
    ta = tokenize(a, MIN_PARTIAL_TOKEN_LEN)
    tb = tokenize(b, MIN_PARTIAL_TOKEN_LEN)
    return sum(1 for x in ta for y in tb if x in y or y in x)


def shared_tokens(a: Optional[str], b: Optional[str], min_len: int = MIN_PARTIAL_TOKEN_LEN) -> list[str]:
    """Tokens present in both texts, sorted for deterministic output."""
    return sorted(tokenize(a, min_len) & tokenize(b, min_len))


def email_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Graded email comparison.

    - identical addresses                 → 1.0
    - same domain                         → 0.6 + 0.4 × local-part similarity
    - same local part, different domain   → 0.6
    - otherwise                           → 0.5 × local-part similarity
    - either side missing or malformed    → 0.0
    """
    if not a or not b or "@" not in a or "@" not in b:
        return 0.0
    local_a, _, domain_a = a.strip().lower().rpartition("@")
    local_b, _, domain_b = b.strip().lower().rpartition("@")
    if local_a == local_b and domain_a == domain_b:
        return 1.0
    local_sim = string_similarity(local_a, local_b)
    if domain_a == domain_b:
        return 0.6 + 0.4 * local_sim
    if local_a == local_b:
        return 0.6
    return 0.5 * local_sim


def band_proximity(level_a: Optional[int], level_b: Optional[int], step: float, default: float = 0.5) -> float:
    """``max(0, 1 - |a - b| × step)``; ``default`` when either level is unknown."""
    if level_a is None or level_b is None:
        return default
    return max(0.0, 1.0 - abs(level_a - level_b) * step)
