"""Helpers for turning a random value into a winning entry position."""

from __future__ import annotations

from typing import Sequence

from .errors import MalformedRandomness


def winner_index(random_words: Sequence[int], participant_count: int) -> int:
    """Return the winning position for ``participant_count`` entries.

    Only the first random word is consumed. The index is
    ``random_words[0] % participant_count``, which favours lower positions
    slightly whenever the word's range is not a multiple of the count. That
    bias is accepted and must not be corrected here.

    Parameters
    ----------
    random_words : Sequence[int]
        Values delivered by the randomness coordinator.
    participant_count : int
        Number of entries at draw time. Must be positive.

    Raises
    ------
    MalformedRandomness
        If no word was delivered or the first word is not a non-negative integer.
    ValueError
        If ``participant_count`` is not positive.
    """

    if participant_count <= 0:
        raise ValueError("participant_count must be positive")
    if not random_words:
        raise MalformedRandomness("Fulfillment did not carry any random words")
    word = random_words[0]
    if isinstance(word, bool) or not isinstance(word, int):
        raise MalformedRandomness(f"Random word must be an integer, got {word!r}")
    if word < 0:
        raise MalformedRandomness("Random word must be non-negative")
    return word % participant_count


__all__ = ["winner_index"]
