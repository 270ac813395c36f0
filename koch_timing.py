"""Morse element timing (PARIS standard, Farnsworth aware).

Durations are in seconds. WPM values are used as given: any positive value
produces a usable, if extreme, timing. Range checks belong to the settings
layer.
"""
from dataclasses import dataclass
from typing import List, NamedTuple, Optional, Sequence

from koch_sequence import MorseCharacter, MorseSymbol

TONE = 'tone'
SILENCE = 'sil'


def dit_seconds(wpm: float) -> float:
    """Convert words-per-minute to the duration of one dit in seconds."""
    return 1.2 / wpm


class ToneSegment(NamedTuple):
    """One step of a playback timeline."""
    kind: str                              # TONE | SILENCE
    seconds: float
    symbol: Optional[MorseSymbol] = None   # set for TONE segments
    char_index: int = 0


@dataclass(frozen=True)
class TimingModel:
    character_wpm: float = 20.0
    farnsworth_wpm: float = 5.0

    @classmethod
    def from_settings(cls, settings) -> 'TimingModel':
        return cls(settings.character_wpm, settings.farnsworth_wpm)

    @property
    def dit(self) -> float:
        return dit_seconds(self.character_wpm)

    @property
    def dah(self) -> float:
        return 3 * self.dit

    @property
    def intra_char_space(self) -> float:
        return self.dit

    @property
    def inter_char_space(self) -> float:
        # Farnsworth stretches only the gap between characters
        return max(3 * self.dit, 3 * dit_seconds(self.farnsworth_wpm))

    def symbol_seconds(self, symbol: MorseSymbol) -> float:
        return self.dit if symbol is MorseSymbol.DIT else self.dah

    def character_seconds(self, character: MorseCharacter) -> float:
        """Keyed length of one character, excluding any trailing gap."""
        n = len(character.pattern)
        tones = sum(self.symbol_seconds(s) for s in character.pattern)
        return tones + max(0, n - 1) * self.intra_char_space

    def sequence_seconds(self, characters: Sequence[MorseCharacter]) -> float:
        return sum(seg.seconds for seg in build_timeline(characters, self))


def build_timeline(characters: Sequence[MorseCharacter], timing: TimingModel) -> List[ToneSegment]:
    """Expand characters into alternating tone/silence segments.

    Elements of a character are separated by the intra-character space and
    characters by the inter-character space. Nothing trails the last element.
    """
    segments: List[ToneSegment] = []
    for ci, character in enumerate(characters):
        last_symbol = len(character.pattern) - 1
        for si, symbol in enumerate(character.pattern):
            segments.append(ToneSegment(TONE, timing.symbol_seconds(symbol), symbol, ci))
            if si != last_symbol:
                segments.append(ToneSegment(SILENCE, timing.intra_char_space, None, ci))
        if ci != len(characters) - 1:
            segments.append(ToneSegment(SILENCE, timing.inter_char_space, None, ci))
    return segments
