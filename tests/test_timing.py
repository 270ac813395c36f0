import pytest

from koch_sequence import MorseSymbol, character_for
from koch_timing import SILENCE, TONE, TimingModel, build_timeline, dit_seconds


def test_dit_and_dah_at_20_wpm() -> None:
    t = TimingModel(20, 20)
    assert t.dit == pytest.approx(0.06)
    assert t.dah == pytest.approx(0.18)
    assert t.intra_char_space == pytest.approx(0.06)


def test_dit_at_15_wpm() -> None:
    assert TimingModel(15, 15).dit == pytest.approx(0.08)
    assert dit_seconds(30) == pytest.approx(0.04)


def test_farnsworth_stretches_inter_character_space() -> None:
    assert TimingModel(20, 5).inter_char_space == pytest.approx(0.72)
    assert TimingModel(20, 20).inter_char_space == pytest.approx(0.18)
    # faster Farnsworth than character speed never shortens the gap
    assert TimingModel(20, 40).inter_char_space == pytest.approx(0.18)


def test_degenerate_wpm_still_positive() -> None:
    t = TimingModel(1, 1)
    assert t.dit == pytest.approx(1.2)
    assert t.inter_char_space > 0


def test_from_settings() -> None:
    class S:
        character_wpm = 25.0
        farnsworth_wpm = 10.0

    t = TimingModel.from_settings(S())
    assert t.character_wpm == 25.0
    assert t.farnsworth_wpm == 10.0


def test_timeline_single_character() -> None:
    t = TimingModel(20, 20)
    segs = build_timeline([character_for('K')], t)
    assert [s.kind for s in segs] == [TONE, SILENCE, TONE, SILENCE, TONE]
    assert [s.symbol for s in segs if s.kind == TONE] == [MorseSymbol.DAH, MorseSymbol.DIT, MorseSymbol.DAH]
    assert sum(s.seconds for s in segs) == pytest.approx(0.18 + 0.06 + 0.06 + 0.06 + 0.18)
    assert t.character_seconds(character_for('K')) == pytest.approx(0.54)


def test_timeline_sequence_gaps() -> None:
    t = TimingModel(20, 5)
    segs = build_timeline([character_for('E'), character_for('T')], t)
    assert segs[0] == (TONE, pytest.approx(0.06), MorseSymbol.DIT, 0)
    assert segs[1].kind == SILENCE and segs[1].seconds == pytest.approx(0.72)
    assert segs[2].kind == TONE and segs[2].char_index == 1
    assert len(segs) == 3
    assert t.sequence_seconds([character_for('E'), character_for('T')]) == pytest.approx(0.06 + 0.72 + 0.18)


def test_empty_timeline() -> None:
    assert build_timeline([], TimingModel()) == []
