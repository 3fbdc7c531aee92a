"""Normalized edit-distance similarity between two strings."""


def levenshtein_distance(a: str, b: str) -> int:
    """Return the Levenshtein edit distance between ``a`` and ``b``.

    Uses the two-row dynamic programming formulation, O(len(a) * len(b)) time
    and O(min(len(a), len(b))) memory.
    """
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Return ``1 - distance / max(len(a), len(b))`` in the range 0.0..1.0.

    Two empty strings are considered identical (1.0).
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest
