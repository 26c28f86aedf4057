"""
Title similarity scoring.

Jaccard coefficient over advanced-normalized word sets. This is a review
aid only: duplicate grouping uses exact equality of basic-normalized
titles, and similarity scores never feed into Keep/End decisions.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .normalizer import advanced_normalize, basic_normalize


def similarity(title1: str, title2: str) -> float:
    """Jaccard similarity of two titles, in [0, 1]."""
    normalized1 = advanced_normalize(title1)
    normalized2 = advanced_normalize(title2)
    if not normalized1 or not normalized2:
        return 0.0

    words1 = set(normalized1.split(" "))
    words2 = set(normalized2.split(" "))
    return len(words1 & words2) / len(words1 | words2)


@dataclass
class SimilarPair:
    """Two listings whose titles are close but not exact duplicates."""
    item_id1: str
    title1: str
    item_id2: str
    title2: str
    score: float


def similar_pairs(
    listings: Sequence[Tuple[str, str]],
    threshold: float,
    limit: int = 100,
) -> List[SimilarPair]:
    """
    Find near-duplicate listings for manual review.

    Args:
        listings: (item_id, title) tuples
        threshold: Minimum similarity score to report
        limit: Maximum number of pairs returned, best scores first

    Pairs whose titles already match in basic mode are skipped since the
    grouper handles them. Comparison is pairwise over distinct keys, so
    keep ``listings`` to a review-sized sample on large exports.
    """
    # One representative per exact key
    representatives: Dict[str, Tuple[str, str, str]] = {}
    for item_id, title in listings:
        key = basic_normalize(title)
        if key and key not in representatives:
            representatives[key] = (item_id, title, advanced_normalize(title))

    entries = list(representatives.values())
    pairs: List[SimilarPair] = []
    for i in range(len(entries)):
        id1, title1, words1 = entries[i]
        if not words1:
            continue
        set1 = set(words1.split(" "))
        for j in range(i + 1, len(entries)):
            id2, title2, words2 = entries[j]
            if not words2:
                continue
            set2 = set(words2.split(" "))
            score = len(set1 & set2) / len(set1 | set2)
            if score >= threshold:
                pairs.append(SimilarPair(id1, title1, id2, title2, score))

    pairs.sort(key=lambda p: -p.score)
    return pairs[:limit]
