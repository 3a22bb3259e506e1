from __future__ import annotations

import math
from collections.abc import Iterable

SIMILARITY_THRESHOLD = 70


def _normalize(text: str) -> str:
    return (text or "").strip().lower()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def levenshtein_distance(a: str, b: str) -> int:
    """Unit-cost edit distance between two questions, ignoring case and edge whitespace."""
    s1 = _normalize(a)
    s2 = _normalize(b)

    # matrix[i][j]: distance between s2[:i] and s1[:j]
    matrix = [[0] * (len(s1) + 1) for _ in range(len(s2) + 1)]
    for i in range(len(s2) + 1):
        matrix[i][0] = i
    for j in range(len(s1) + 1):
        matrix[0][j] = j

    for i in range(1, len(s2) + 1):
        for j in range(1, len(s1) + 1):
            if s2[i - 1] == s1[j - 1]:
                matrix[i][j] = matrix[i - 1][j - 1]
            else:
                matrix[i][j] = min(
                    matrix[i - 1][j - 1] + 1,
                    matrix[i][j - 1] + 1,
                    matrix[i - 1][j] + 1,
                )

    return matrix[len(s2)][len(s1)]


def similarity(a: str, b: str) -> int:
    """Similarity in percent (0-100). Two empty strings are identical."""
    # Lengths are taken before trimming, so surrounding whitespace dilutes the edit distance.
    max_len = max(len(a or ""), len(b or ""))
    if max_len == 0:
        return 100
    distance = levenshtein_distance(a, b)
    return round_half_up((max_len - distance) / max_len * 100)


def is_similar(question: str, prompt: str, threshold: int = SIMILARITY_THRESHOLD) -> bool:
    return similarity(question, prompt) >= threshold


def matches_any(question: str, prompts: Iterable[str], threshold: int = SIMILARITY_THRESHOLD) -> bool:
    """True when the question is a (fuzzy) copy of at least one predefined prompt."""
    return any(is_similar(question, prompt, threshold) for prompt in prompts)
