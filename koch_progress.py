"""Learner progress for KochTrainer.

ProgressState is a plain data record (per-character rolling history, streaks,
session counters, unlocked count). ProgressStore owns one state, applies the
unlock policy after every attempt and hands the state to a save hook.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Tuple
import logging
import time

from koch_sequence import KochSequence, MorseCharacter
from koch_unlock import UnlockPolicy

logger = logging.getLogger(__name__)

HISTORY_LENGTH = 10
STALE_SESSION_SECONDS = 4 * 60 * 60


@dataclass
class CharacterStats:
    """Outcomes of the most recent attempts at one glyph, oldest first."""
    history: Deque[bool] = field(default_factory=lambda: deque(maxlen=HISTORY_LENGTH))

    def __post_init__(self):
        # Normalise lists coming from from_dict() into a bounded deque
        if not isinstance(self.history, deque) or self.history.maxlen != HISTORY_LENGTH:
            self.history = deque(self.history, maxlen=HISTORY_LENGTH)

    def record(self, correct: bool) -> None:
        self.history.append(bool(correct))

    @property
    def attempts(self) -> int:
        return len(self.history)

    @property
    def accuracy(self) -> float:
        """Percentage correct over the history; 0.0 when there is none."""
        if not self.history:
            return 0.0
        return sum(self.history) * 100.0 / len(self.history)


@dataclass(frozen=True)
class UnlockDelta:
    """Result of one recorded attempt: which glyphs were newly unlocked."""
    glyphs: Tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return len(self.glyphs)

    @property
    def last(self) -> Optional[str]:
        return self.glyphs[-1] if self.glyphs else None

    def __bool__(self) -> bool:
        return bool(self.glyphs)


@dataclass
class CharacterReport:
    """One row of the per-character statistics table."""
    glyph: str
    accuracy: float
    attempts: int
    unlocked: bool
    is_next: bool


@dataclass
class ProgressState:
    """Serializable snapshot of everything the trainer knows about a learner."""
    unlocked_count: int = KochSequence.MINIMUM_CHARACTERS
    character_stats: Dict[str, CharacterStats] = field(default_factory=dict)
    total_correct: int = 0
    total_attempts: int = 0
    current_streak: int = 0
    best_streak: int = 0
    session_correct: int = 0
    session_total: int = 0
    last_session_timestamp: Optional[float] = None

    # ---- queries ----
    def history(self, glyph: str) -> List[bool]:
        stats = self.character_stats.get(glyph.upper())
        return list(stats.history) if stats else []

    def accuracy(self, glyph: str) -> float:
        stats = self.character_stats.get(glyph.upper())
        return stats.accuracy if stats else 0.0

    def pool_accuracy(self) -> float:
        """Mean accuracy over unlocked glyphs that have at least one attempt.

        Glyphs without history are left out of the mean rather than counted
        as zero, so a freshly unlocked character does not drag the pool down.
        """
        accuracies = [
            self.character_stats[g].accuracy
            for g in KochSequence.ORDER[:self.unlocked_count]
            if g in self.character_stats and self.character_stats[g].attempts
        ]
        if not accuracies:
            return 0.0
        return sum(accuracies) / len(accuracies)

    @property
    def overall_accuracy(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.total_correct * 100.0 / self.total_attempts

    @property
    def session_accuracy(self) -> float:
        if self.session_total == 0:
            return 0.0
        return self.session_correct * 100.0 / self.session_total

    def is_session_stale(self, now: float) -> bool:
        if self.last_session_timestamp is None:
            return False
        return now - self.last_session_timestamp >= STALE_SESSION_SECONDS

    @property
    def available_characters(self) -> List[MorseCharacter]:
        return KochSequence.characters(self.unlocked_count)

    @property
    def available_glyphs(self) -> Tuple[str, ...]:
        return KochSequence.ORDER[:self.unlocked_count]

    def is_available(self, glyph: str) -> bool:
        return bool(glyph) and glyph.upper() in self.available_glyphs

    def characters_to_unlock(self, policy: Optional[UnlockPolicy] = None) -> int:
        return (policy or UnlockPolicy()).characters_to_unlock(self)

    def should_unlock_next_character(self, policy: Optional[UnlockPolicy] = None) -> bool:
        return self.characters_to_unlock(policy) > 0

    def character_report(self) -> List[CharacterReport]:
        """Accuracy table over the whole Koch order, for stats displays."""
        rows = []
        for i, glyph in enumerate(KochSequence.ORDER):
            stats = self.character_stats.get(glyph)
            rows.append(CharacterReport(
                glyph=glyph,
                accuracy=stats.accuracy if stats else 0.0,
                attempts=stats.attempts if stats else 0,
                unlocked=i < self.unlocked_count,
                is_next=i == self.unlocked_count,
            ))
        return rows

    # ---- mutators ----
    def record_attempt(self, glyph: str, correct: bool) -> None:
        """Update history and lifetime counters. Does not unlock anything."""
        key = glyph.upper()
        self.character_stats.setdefault(key, CharacterStats()).record(correct)
        self.total_attempts += 1
        if correct:
            self.total_correct += 1
            self.current_streak += 1
            self.best_streak = max(self.best_streak, self.current_streak)
        else:
            self.current_streak = 0

    def record_session_attempt(self, correct: bool, now: float) -> None:
        if self.last_session_timestamp is None:
            self.last_session_timestamp = now
        self.session_total += 1
        if correct:
            self.session_correct += 1

    def reset_session(self, now: float) -> None:
        self.session_correct = 0
        self.session_total = 0
        self.last_session_timestamp = now

    def unlock_next_characters(self, count: int = 1) -> List[str]:
        """Unlock up to ``count`` more glyphs, clamped to the full set.

        Returns the glyphs that were newly unlocked, in Koch order.
        """
        assert count >= 0, f"unlock count must be non-negative, got {count}"
        before = self.unlocked_count
        self.unlocked_count = min(before + max(0, count), KochSequence.TOTAL_CHARACTERS)
        return list(KochSequence.ORDER[before:self.unlocked_count])

    def unlock_next_character(self) -> List[str]:
        return self.unlock_next_characters(1)

    # ---- serialization ----
    def to_dict(self) -> Dict[str, Any]:
        return {
            'unlocked_count': self.unlocked_count,
            'character_history': {g: list(s.history) for g, s in self.character_stats.items()},
            'total_correct': self.total_correct,
            'total_attempts': self.total_attempts,
            'current_streak': self.current_streak,
            'best_streak': self.best_streak,
            'session_correct': self.session_correct,
            'session_total': self.session_total,
            'last_session_timestamp': self.last_session_timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProgressState':
        """Rebuild a state from ``to_dict()`` output.

        Raises:
            KeyError, TypeError, ValueError: on malformed input.
        """
        unlocked = int(data['unlocked_count'])
        if not KochSequence.MINIMUM_CHARACTERS <= unlocked <= KochSequence.TOTAL_CHARACTERS:
            raise ValueError(f"unlocked_count out of range: {unlocked}")
        history = data.get('character_history', {})
        stats = {
            str(g).upper(): CharacterStats(deque((bool(v) for v in values), maxlen=HISTORY_LENGTH))
            for g, values in history.items()
        }
        ts = data.get('last_session_timestamp')
        return cls(
            unlocked_count=unlocked,
            character_stats=stats,
            total_correct=int(data.get('total_correct', 0)),
            total_attempts=int(data.get('total_attempts', 0)),
            current_streak=int(data.get('current_streak', 0)),
            best_streak=int(data.get('best_streak', 0)),
            session_correct=int(data.get('session_correct', 0)),
            session_total=int(data.get('session_total', 0)),
            last_session_timestamp=None if ts is None else float(ts),
        )


class ProgressStore:
    """Single owner of a ProgressState.

    Every mutating call finishes by passing the state to ``save_hook``; what
    the hook does with it (JSON file, nothing at all) is up to the host.
    """

    def __init__(self, state: Optional[ProgressState] = None,
                 policy: Optional[UnlockPolicy] = None,
                 save_hook: Optional[Callable[[ProgressState], None]] = None,
                 clock: Callable[[], float] = time.time):
        self.state = state if state is not None else ProgressState()
        self.policy = policy or UnlockPolicy()
        self.save_hook = save_hook
        self.clock = clock

    def _save(self) -> None:
        if self.save_hook is None:
            return
        try:
            self.save_hook(self.state)
        except Exception:
            logger.exception("Saving progress failed; continuing with in-memory state")

    def ensure_fresh_session(self) -> bool:
        """Reset session counters if the last session is stale. Returns True if reset."""
        now = self.clock()
        if self.state.is_session_stale(now):
            logger.debug("Session stale, resetting session counters")
            self.state.reset_session(now)
            self._save()
            return True
        return False

    def record_attempt(self, glyph: str, correct: bool) -> UnlockDelta:
        """Record one answer, apply the unlock policy and save.

        Returns an UnlockDelta naming any glyphs unlocked by this attempt.
        """
        now = self.clock()
        state = self.state
        if state.is_session_stale(now):
            state.reset_session(now)
        state.record_attempt(glyph, correct)
        state.record_session_attempt(correct, now)

        unlocked = state.unlock_next_characters(self.policy.characters_to_unlock(state))
        if unlocked:
            logger.info("Unlocked %s (now %d characters)", ', '.join(unlocked), state.unlocked_count)
        logger.debug("Attempt %s correct=%s streak=%d", glyph, correct, state.current_streak)
        self._save()
        return UnlockDelta(tuple(unlocked))

    def record_attempts(self, outcomes: Iterable[Tuple[str, bool]]) -> UnlockDelta:
        """Record a batch of answers; the delta covers the whole batch."""
        unlocked: List[str] = []
        for glyph, correct in outcomes:
            unlocked.extend(self.record_attempt(glyph, correct).glyphs)
        return UnlockDelta(tuple(unlocked))

    def unlock_next_characters(self, count: int = 1) -> UnlockDelta:
        unlocked = self.state.unlock_next_characters(count)
        self._save()
        return UnlockDelta(tuple(unlocked))

    def reset_session(self) -> None:
        self.state.reset_session(self.clock())
        self._save()

    def reset_progress(self) -> None:
        self.state = ProgressState()
        self._save()
