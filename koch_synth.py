"""Continuous-phase sine generator for Morse playback.

RenderState is the only data shared between the control thread and the
audio callback: a tone-on flag, the running phase and the frequency. The
control side just assigns attributes; the callback reads them once per
buffer, so a change lands within one buffer of audio.

The same generator renders whole sequences offline into numpy buffers.
"""
from typing import Sequence
import math
import wave

import numpy as np

from koch_sequence import MorseCharacter
from koch_timing import TONE, TimingModel, build_timeline

DEFAULT_SAMPLE_RATE = 44100
DEFAULT_TONE_HZ = 700.0
DEFAULT_GAIN = 0.3
TWO_PI = 2.0 * math.pi


class RenderState:
    """Plain numeric fields touched by the real-time callback."""
    __slots__ = ('tone_on', 'phase', 'frequency')

    def __init__(self, frequency: float = DEFAULT_TONE_HZ):
        self.tone_on = False
        self.phase = 0.0
        self.frequency = frequency


class ToneGenerator:
    """Fill mono float32 buffers from a RenderState.

    While the tone is on the phase advances sample by sample; while it is off
    the output is zero and the phase is held, so consecutive tones in one
    playback join without a discontinuity.
    """

    def __init__(self, state: RenderState, sample_rate: int = DEFAULT_SAMPLE_RATE,
                 gain: float = DEFAULT_GAIN, max_frames: int = 4096):
        self.state = state
        self.sample_rate = sample_rate
        self.gain = gain
        self._index = np.arange(max_frames, dtype=np.float64)
        self._scratch = np.empty(max_frames, dtype=np.float64)

    def _ensure_capacity(self, frames: int) -> None:
        if frames > self._index.shape[0]:
            self._index = np.arange(frames, dtype=np.float64)
            self._scratch = np.empty(frames, dtype=np.float64)

    def render_into(self, out: 'np.ndarray') -> None:
        """Write ``len(out)`` samples into ``out`` (1-D float32 view)."""
        state = self.state
        frames = out.shape[0]
        if not state.tone_on:
            out.fill(0.0)
            return
        self._ensure_capacity(frames)
        increment = TWO_PI * state.frequency / self.sample_rate
        phase = state.phase
        scratch = self._scratch[:frames]
        np.multiply(self._index[:frames], increment, out=scratch)
        scratch += phase
        np.sin(scratch, out=scratch)
        scratch *= self.gain
        out[:] = scratch
        state.phase = (phase + frames * increment) % TWO_PI

    def render(self, frames: int) -> 'np.ndarray':
        buf = np.zeros(frames, dtype=np.float32)
        if frames:
            self.render_into(buf)
        return buf

    def reset_phase(self) -> None:
        self.state.phase = 0.0


def render_sequence(characters: Sequence[MorseCharacter], timing: TimingModel,
                    frequency: float = DEFAULT_TONE_HZ,
                    sample_rate: int = DEFAULT_SAMPLE_RATE,
                    gain: float = DEFAULT_GAIN) -> 'np.ndarray':
    """Render a character sequence to a mono float32 buffer.

    Segment lengths are rounded to whole samples; phase carries over from one
    tone segment to the next exactly as during live playback.
    """
    state = RenderState(frequency)
    gen = ToneGenerator(state, sample_rate, gain)
    chunks = []
    for seg in build_timeline(characters, timing):
        n = int(round(seg.seconds * sample_rate))
        state.tone_on = seg.kind == TONE
        chunks.append(gen.render(n))
    state.tone_on = False
    if not chunks:
        return np.zeros(0, dtype=np.float32)
    return np.concatenate(chunks)


def write_wav(path: str, samples: 'np.ndarray', sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
    """Write mono float samples in [-1, 1] to a 16-bit PCM WAV file."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767.0).astype('<i2')
    with wave.open(path, 'wb') as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm.tobytes())
