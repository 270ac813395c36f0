"""Accuracy-weighted character selection.

Weak characters are drawn more often than strong ones; characters never
attempted get a moderate fixed weight so they show up early without
dominating practice.
"""
from itertools import accumulate
from typing import List, Optional, Sequence
import bisect
import random

from koch_sequence import MorseCharacter

UNSEEN_WEIGHT = 1.5
MIN_WEIGHT = 0.2
MAX_WEIGHT = 2.0


def selection_weight(stats) -> float:
    """Map a CharacterStats (or None) to a sampling weight in [0.2, 2.0]."""
    if stats is None or not stats.attempts:
        return UNSEEN_WEIGHT
    weight = MIN_WEIGHT + (MAX_WEIGHT - MIN_WEIGHT) * (1.0 - stats.accuracy / 100.0)
    return min(MAX_WEIGHT, max(MIN_WEIGHT, weight))


class WeightedSelector:
    """Draw characters in proportion to ``selection_weight``.

    Args:
        state: ProgressState whose per-character stats drive the weights.
        rng: optional random.Random, for reproducible draws.
    """

    def __init__(self, state, rng: Optional[random.Random] = None):
        self.state = state
        self.rng = rng or random.Random()

    def weight_for(self, character: MorseCharacter) -> float:
        return selection_weight(self.state.character_stats.get(character.glyph))

    def weighted_random_character(self, candidates: Sequence[MorseCharacter]) -> Optional[MorseCharacter]:
        if not candidates:
            return None
        cumulative = list(accumulate(self.weight_for(c) for c in candidates))
        draw = self.rng.uniform(0.0, cumulative[-1])
        # uniform() can return the upper bound itself
        index = min(bisect.bisect_right(cumulative, draw), len(candidates) - 1)
        return candidates[index]

    def weighted_sequence(self, candidates: Sequence[MorseCharacter], length: int) -> List[MorseCharacter]:
        """Draw ``length`` characters independently (repeats allowed)."""
        if not candidates:
            return []
        return [self.weighted_random_character(candidates) for _ in range(length)]
