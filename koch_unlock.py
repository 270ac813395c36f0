"""Unlock policy: how many new Koch characters a learner has earned.

The policy reads a ProgressState and never mutates it. Thresholds live in
UnlockThresholds so they can be tuned without touching the decision logic.
"""
from dataclasses import dataclass

from koch_sequence import KochSequence


@dataclass(frozen=True)
class UnlockThresholds:
    """Tuning constants for the unlock decision. Accuracies are percentages."""
    momentum_streak: int = 5
    momentum_min_attempts: int = 5
    momentum_newest_accuracy: float = 70.0
    min_attempts: int = 8
    newest_accuracy: float = 80.0
    pool_accuracy: float = 75.0
    multi_pool_accuracy: float = 95.0
    multi_newest_accuracy: float = 90.0


DEFAULT_THRESHOLDS = UnlockThresholds()


class UnlockPolicy:
    """Decide whether to unlock 0, 1 or 2 characters after an attempt.

    Rules are evaluated in order and the first match wins:
      1. everything unlocked -> 0
      2. momentum bonus (hot streak, relaxed newest-character bar) -> 1
      3. newest character not yet reliable -> 0
      4. pool of unlocked characters not healthy -> 0
      5. near-perfect pool and newest character, room for two -> 2
      6. otherwise -> 1
    """

    def __init__(self, thresholds: UnlockThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def has_momentum(self, state) -> bool:
        return state.current_streak >= self.thresholds.momentum_streak

    def characters_to_unlock(self, state) -> int:
        t = self.thresholds
        total = KochSequence.TOTAL_CHARACTERS
        if state.unlocked_count >= total:
            return 0

        newest = KochSequence.glyph_at(state.unlocked_count - 1)
        attempts = len(state.history(newest))
        newest_acc = state.accuracy(newest)
        pool = state.pool_accuracy()

        if (self.has_momentum(state) and attempts >= t.momentum_min_attempts
                and newest_acc >= t.momentum_newest_accuracy and pool >= t.pool_accuracy):
            return 1

        if attempts < t.min_attempts or newest_acc < t.newest_accuracy:
            return 0

        if pool < t.pool_accuracy:
            return 0

        if (pool >= t.multi_pool_accuracy and newest_acc >= t.multi_newest_accuracy
                and state.unlocked_count + 1 < total):
            return 2

        return 1
