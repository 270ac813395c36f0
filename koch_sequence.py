"""Morse character table and Koch teaching order for KochTrainer.

This module holds the fixed 40 character set (letters, digits and four
punctuation marks), the Koch order in which they are introduced and a few
lookup helpers shared by the progression and audio code.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple
import random


class MorseSymbol(Enum):
    """A single keyed element."""
    DIT = '.'
    DAH = '-'


# Dot/dash patterns for the full trainable set
MORSE_MAP: Dict[str, str] = {
    'A': '.-',    'B': '-...',  'C': '-.-.', 'D': '-..',  'E': '.',
    'F': '..-.',  'G': '--.',   'H': '....', 'I': '..',   'J': '.---',
    'K': '-.-',   'L': '.-..',  'M': '--',   'N': '-.',   'O': '---',
    'P': '.--.',  'Q': '--.-',  'R': '.-.',  'S': '...',  'T': '-',
    'U': '..-',   'V': '...-',  'W': '.--',  'X': '-..-', 'Y': '-.--',
    'Z': '--..',
    '0': '-----', '1': '.----', '2': '..---','3': '...--','4': '....-',
    '5': '.....', '6': '-....', '7': '--...', '8': '---..','9': '----.',
    '.': '.-.-.-', ',': '--..--', '?': '..--..', '/': '-..-.',
}

# Names used when an answer is announced aloud
SPOKEN_NAMES: Dict[str, str] = {
    '.': 'period',
    ',': 'comma',
    '?': 'question mark',
    '/': 'slash',
}


@dataclass(frozen=True)
class MorseCharacter:
    """Immutable glyph plus its ordered element pattern."""
    glyph: str
    pattern: Tuple[MorseSymbol, ...]

    @property
    def display_string(self) -> str:
        return self.glyph

    @property
    def code(self) -> str:
        """Pattern rendered as dots and dashes, e.g. ``-.-`` for K."""
        return ''.join(s.value for s in self.pattern)

    @property
    def spoken_name(self) -> str:
        return SPOKEN_NAMES.get(self.glyph, self.glyph)


def _build_characters() -> Dict[str, MorseCharacter]:
    return {
        glyph: MorseCharacter(glyph, tuple(MorseSymbol(c) for c in code))
        for glyph, code in MORSE_MAP.items()
    }


CHARACTERS: Dict[str, MorseCharacter] = _build_characters()


def character_for(glyph: str) -> Optional[MorseCharacter]:
    """Look up a character by glyph (case-insensitive). Returns None if unknown."""
    if not glyph:
        return None
    return CHARACTERS.get(glyph.upper())


def spoken_name(glyph: str) -> str:
    """Return the text to speak for ``glyph``: punctuation by name, else the glyph."""
    return SPOKEN_NAMES.get(glyph, glyph)


class KochSequence:
    """Koch method order: most distinctive sounds first."""

    ORDER: Tuple[str, ...] = (
        'K', 'M', 'R', 'S', 'U', 'A', 'P', 'T', 'L', 'O',
        'W', 'I', '.', 'N', 'J', 'E', 'F', '0', 'Y', 'V',
        ',', 'G', '5', '/', 'Q', '9', 'Z', 'H', '3', '8',
        'B', '?', '4', '2', '7', 'C', '1', 'D', '6', 'X',
    )

    MINIMUM_CHARACTERS = 2
    TOTAL_CHARACTERS = len(ORDER)

    _INDEX: Dict[str, int] = {glyph: i for i, glyph in enumerate(ORDER)}

    @classmethod
    def characters(cls, up_to: int) -> List[MorseCharacter]:
        """Return the first ``up_to`` characters of the order."""
        return [CHARACTERS[g] for g in cls.ORDER[:max(0, up_to)]]

    @classmethod
    def random_character(cls, from_first: int, rng: Optional[random.Random] = None) -> Optional[MorseCharacter]:
        available = cls.characters(from_first)
        if not available:
            return None
        return (rng or random).choice(available)

    @classmethod
    def index_of(cls, glyph: str) -> Optional[int]:
        return cls._INDEX.get(glyph.upper())

    @classmethod
    def glyph_at(cls, index: int) -> str:
        return cls.ORDER[index]
