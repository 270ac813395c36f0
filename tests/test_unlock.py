import copy

from koch_progress import ProgressState
from koch_unlock import UnlockPolicy, UnlockThresholds


def _record(state: ProgressState, glyph: str, correct: bool, times: int = 1) -> None:
    for _ in range(times):
        state.record_attempt(glyph, correct)


def test_fresh_state_unlocks_nothing() -> None:
    assert ProgressState().characters_to_unlock() == 0


def test_eight_correct_each_unlocks_one() -> None:
    state = ProgressState()
    _record(state, 'K', True, 8)
    _record(state, 'M', True, 8)
    assert state.characters_to_unlock() == 1
    assert state.should_unlock_next_character()


def test_multi_unlock_without_momentum() -> None:
    state = ProgressState()
    _record(state, 'K', False)
    _record(state, 'K', True, 10)
    _record(state, 'M', True, 10)
    _record(state, 'K', False)
    # K 90%, M 100%: pool 95, newest 100, streak broken
    assert state.current_streak == 0
    assert state.pool_accuracy() == 95.0
    assert state.characters_to_unlock() == 2


def test_momentum_takes_precedence_over_multi_unlock() -> None:
    state = ProgressState()
    _record(state, 'K', True, 10)
    _record(state, 'M', True, 10)
    assert state.current_streak >= 5
    assert state.characters_to_unlock() == 1


def test_momentum_bonus_relaxes_newest_gate() -> None:
    state = ProgressState()
    _record(state, 'K', True, 4)
    _record(state, 'M', False, 1)
    _record(state, 'M', True, 5)
    # M: 5/6 = 83% over only 6 attempts, streak 5
    assert state.characters_to_unlock() == 1


def test_primary_gate_needs_eight_attempts() -> None:
    state = ProgressState()
    _record(state, 'K', True, 8)
    _record(state, 'M', False)
    _record(state, 'M', True, 6)
    # streak 6 but M has 7 attempts at 85.7%; momentum would pass, so break it
    _record(state, 'K', False)
    assert state.characters_to_unlock() == 0


def test_primary_gate_needs_newest_accuracy() -> None:
    state = ProgressState()
    _record(state, 'K', True, 10)
    for i in range(10):
        state.record_attempt('M', i % 2 == 0)
    assert state.characters_to_unlock() == 0


def test_pool_health_gate() -> None:
    state = ProgressState(unlocked_count=3)
    _record(state, 'K', False, 10)
    _record(state, 'M', True, 2)
    _record(state, 'M', False, 8)
    _record(state, 'R', True, 10)
    _record(state, 'R', False)
    # newest R is 90%, pool (0 + 20 + 90) / 3 well under 75
    assert state.characters_to_unlock() == 0


def test_no_multi_unlock_when_only_one_slot_left() -> None:
    state = ProgressState(unlocked_count=39)
    newest = state.available_glyphs[-1]
    assert newest == '6'
    _record(state, newest, True, 10)
    _record(state, 'K', True, 10)
    _record(state, 'K', False)
    # pool 95, newest 100, no momentum: would be 2 with room for it
    assert state.current_streak == 0
    assert state.characters_to_unlock() == 1


def test_everything_unlocked_returns_zero() -> None:
    state = ProgressState(unlocked_count=40)
    _record(state, 'X', True, 10)
    assert state.characters_to_unlock() == 0


def test_policy_is_pure() -> None:
    state = ProgressState()
    _record(state, 'K', True, 9)
    _record(state, 'M', True, 9)
    snapshot = copy.deepcopy(state.to_dict())
    policy = UnlockPolicy()
    results = {policy.characters_to_unlock(state) for _ in range(5)}
    assert len(results) == 1
    assert state.to_dict() == snapshot


def test_thresholds_are_configurable() -> None:
    state = ProgressState()
    _record(state, 'K', True, 3)
    _record(state, 'M', True, 3)
    strict = UnlockPolicy()
    lenient = UnlockPolicy(UnlockThresholds(momentum_min_attempts=3, min_attempts=3))
    assert strict.characters_to_unlock(state) == 0
    assert lenient.characters_to_unlock(state) == 1
