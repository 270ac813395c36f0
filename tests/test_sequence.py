import random

from koch_sequence import (
    CHARACTERS,
    KochSequence,
    MorseSymbol,
    character_for,
    spoken_name,
)


def test_koch_order_is_a_bijection_with_character_set() -> None:
    assert len(KochSequence.ORDER) == 40
    assert set(KochSequence.ORDER) == set(CHARACTERS)
    assert KochSequence.TOTAL_CHARACTERS == 40
    assert KochSequence.ORDER[:2] == ('K', 'M')


def test_patterns() -> None:
    k = character_for('K')
    assert k is not None
    assert k.pattern == (MorseSymbol.DAH, MorseSymbol.DIT, MorseSymbol.DAH)
    assert k.code == '-.-'
    assert character_for('.').code == '.-.-.-'
    assert character_for('/').code == '-..-.'


def test_lookup_is_case_insensitive_and_rejects_unknown() -> None:
    assert character_for('k') == character_for('K')
    assert character_for('#') is None
    assert character_for('') is None


def test_characters_up_to_and_index() -> None:
    assert [c.glyph for c in KochSequence.characters(4)] == ['K', 'M', 'R', 'S']
    assert KochSequence.characters(0) == []
    assert KochSequence.index_of('x') == 39
    assert KochSequence.index_of('#') is None


def test_random_character_stays_in_prefix() -> None:
    rng = random.Random(3)
    for _ in range(50):
        assert KochSequence.random_character(3, rng).glyph in ('K', 'M', 'R')
    assert KochSequence.random_character(0, rng) is None


def test_punctuation_is_spoken_by_name() -> None:
    assert spoken_name('.') == 'period'
    assert spoken_name(',') == 'comma'
    assert spoken_name('?') == 'question mark'
    assert spoken_name('/') == 'slash'
    assert spoken_name('K') == 'K'
    assert character_for('?').spoken_name == 'question mark'
