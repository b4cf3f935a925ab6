"""
Utility functions for the diff_utils package.
"""

from typing import Optional


def clamp(value, min_value, max_value):
    """
    Clamp a value between a minimum and maximum.

    Args:
        value: The value to clamp
        min_value: The minimum allowed value
        max_value: The maximum allowed value

    Returns:
        The clamped value
    """
    return max(min_value, min(value, max_value))


def levenshtein_distance(a: str, b: str, max_distance: Optional[int] = None) -> int:
    """
    Calculate the Levenshtein edit distance between two strings.

    Uses the two-row dynamic programming formulation. When max_distance is
    given, the computation stops early once every cell in a row exceeds it and
    max_distance + 1 is returned.

    Args:
        a: First string
        b: Second string
        max_distance: Optional cut-off

    Returns:
        The number of single-character insertions, deletions and substitutions
    """
    if a == b:
        return 0
    # Keep the inner loop over the shorter string
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        row_min = i
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            value = min(previous[j] + 1,         # deletion
                        current[j - 1] + 1,      # insertion
                        previous[j - 1] + cost)  # substitution
            current.append(value)
            if value < row_min:
                row_min = value
        if max_distance is not None and row_min > max_distance:
            return max_distance + 1
        previous = current
    return previous[-1]


def calculate_similarity(text1: str, text2: str) -> float:
    """
    Calculate the similarity between two blocks of text.

    Returns 1 - distance / max(len(text1), len(text2)), so identical text
    scores 1.0 and two empty strings are considered identical.
    """
    max_length = max(len(text1), len(text2))
    if max_length == 0:
        return 1.0
    return 1.0 - (levenshtein_distance(text1, text2) / max_length)


def bounded_similarity(text1: str, text2: str, threshold: float) -> Optional[float]:
    """
    Calculate similarity only if it can reach threshold.

    Windows whose length difference alone rules them out are rejected without
    running the edit distance, and the distance computation stops as soon as
    the threshold becomes unreachable.

    Returns:
        The similarity, or None when it is below threshold
    """
    max_length = max(len(text1), len(text2))
    if max_length == 0:
        return 1.0
    max_distance = int((1.0 - threshold) * max_length + 1e-9)
    if abs(len(text1) - len(text2)) > max_distance:
        return None
    distance = levenshtein_distance(text1, text2, max_distance)
    if distance > max_distance:
        return None
    similarity = 1.0 - (distance / max_length)
    return similarity if similarity >= threshold else None
