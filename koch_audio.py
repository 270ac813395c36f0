"""Real-time Morse playback for KochTrainer.

ToneScheduler walks a symbol timeline, flipping the shared RenderState's
tone flag on and off while an AudioOutput streams the ToneGenerator to the
sound device. Haptic pulses and spoken answers go to injected sinks.

If the sound device cannot be opened the scheduler keeps going in silent
mode: timing, haptics and speech still happen, only the tone is missing.
"""
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, Optional, Protocol, Sequence, runtime_checkable
import logging
import threading

try:
    import sounddevice as sd
except (ImportError, OSError):
    # OSError: the module is installed but PortAudio itself is missing
    sd = None

from koch_sequence import MorseCharacter, MorseSymbol, spoken_name
from koch_synth import DEFAULT_SAMPLE_RATE, DEFAULT_TONE_HZ, RenderState, ToneGenerator
from koch_timing import TONE, TimingModel, build_timeline

logger = logging.getLogger(__name__)

AUDIO_BLOCK_SIZE = 256

# Answer feedback tones
CORRECT_TONE_HZ = 880.0
CORRECT_TONE_SECONDS = 0.15
INCORRECT_TONE_HZ = 220.0
INCORRECT_TONE_SECONDS = 0.3
INCORRECT_GAP_SECONDS = 0.1
INCORRECT_SECOND_TONE_HZ = INCORRECT_TONE_HZ * 0.75
INCORRECT_SECOND_TONE_SECONDS = 0.2


class AudioUnavailableError(RuntimeError):
    """The audio output device could not be acquired."""


@runtime_checkable
class HapticSink(Protocol):
    def pulse_light(self) -> None: ...
    def pulse_medium(self) -> None: ...
    def notify_success(self) -> None: ...
    def notify_error(self) -> None: ...


@runtime_checkable
class SpeechSink(Protocol):
    def speak(self, text: str) -> None: ...
    def stop(self) -> None: ...


class NullHaptics:
    """Haptic sink for hosts without vibration hardware."""

    def pulse_light(self) -> None:
        logger.debug("haptic: light")

    def pulse_medium(self) -> None:
        logger.debug("haptic: medium")

    def notify_success(self) -> None:
        logger.debug("haptic: success")

    def notify_error(self) -> None:
        logger.debug("haptic: error")


class NullSpeech:
    """Speech sink that only logs what would have been said."""

    def speak(self, text: str) -> None:
        logger.info("say: %s", text)

    def stop(self) -> None:
        pass


class AudioOutput:
    """Mono float32 sounddevice stream driven by a ToneGenerator callback."""

    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE,
                 blocksize: int = AUDIO_BLOCK_SIZE, device=None):
        self.sample_rate = sample_rate
        self.blocksize = blocksize
        self.device = device
        self._stream = None

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def open(self, generator: ToneGenerator) -> None:
        """Start streaming ``generator``. No-op if already open.

        Raises:
            AudioUnavailableError: sounddevice is missing or the device refused.
        """
        if self._stream is not None:
            return
        if sd is None:
            raise AudioUnavailableError("sounddevice/PortAudio is not available")

        def callback(outdata, frames, time_info, status):
            generator.render_into(outdata[:, 0])

        try:
            stream = sd.OutputStream(samplerate=self.sample_rate, channels=1, dtype='float32',
                                     blocksize=self.blocksize, device=self.device,
                                     callback=callback)
            stream.start()
        except (sd.PortAudioError, ValueError) as e:
            raise AudioUnavailableError(str(e)) from e
        self._stream = stream

    def close(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error closing audio stream: %s", e)


class PlaybackState(Enum):
    IDLE = 'idle'
    ARMED = 'armed'
    PLAYING = 'playing'
    CANCELLED = 'cancelled'


class ToneScheduler:
    """Play characters and feedback tones with synchronized haptics.

    One playback runs at a time; starting a new one cancels the current one.
    ``cancel()`` silences output immediately and is safe to call from any
    thread, any number of times.

    Args:
        output: object with ``open(generator)``/``close()``; defaults to AudioOutput.
        haptics: HapticSink, defaults to NullHaptics.
        speech: SpeechSink, defaults to NullSpeech.
        on_playing_changed: called with the new ``is_playing`` value.
        on_device_error: called with the AudioUnavailableError when the
            device cannot be opened.
    """

    def __init__(self, output=None, haptics: Optional[HapticSink] = None,
                 speech: Optional[SpeechSink] = None,
                 sample_rate: int = DEFAULT_SAMPLE_RATE,
                 on_playing_changed: Optional[Callable[[bool], None]] = None,
                 on_device_error: Optional[Callable[[Exception], None]] = None):
        self.render_state = RenderState(DEFAULT_TONE_HZ)
        self.generator = ToneGenerator(self.render_state, sample_rate)
        self.output = output if output is not None else AudioOutput(sample_rate)
        self.haptics = haptics or NullHaptics()
        self.speech = speech or NullSpeech()
        self.on_playing_changed = on_playing_changed
        self.on_device_error = on_device_error
        self.state = PlaybackState.IDLE
        self.degraded = False
        self._cancel = threading.Event()
        self._play_lock = threading.Lock()

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    def _set_state(self, state: PlaybackState) -> None:
        was_playing = self.is_playing
        self.state = state
        if was_playing != self.is_playing and self.on_playing_changed is not None:
            self.on_playing_changed(self.is_playing)

    def _open_output(self) -> None:
        try:
            self.output.open(self.generator)
            self.degraded = False
        except AudioUnavailableError as e:
            if not self.degraded:
                logger.warning("Audio output unavailable, continuing silently: %s", e)
            self.degraded = True
            if self.on_device_error is not None:
                self.on_device_error(e)

    def _wait(self, seconds: float, handle=None) -> bool:
        """Sleep, returning False as soon as playback is cancelled."""
        if handle is not None and handle.cancelled:
            return False
        return not self._cancel.wait(seconds)

    @contextmanager
    def _playback(self, frequency: float) -> Iterator[None]:
        if self.is_playing:
            self._cancel.set()
        with self._play_lock:
            self._cancel.clear()
            self._set_state(PlaybackState.ARMED)
            self.render_state.tone_on = False
            self.generator.reset_phase()
            self.render_state.frequency = frequency
            self._open_output()
            self._set_state(PlaybackState.PLAYING)
            try:
                yield
            finally:
                self.render_state.tone_on = False
                self.output.close()
                if self._cancel.is_set():
                    self._set_state(PlaybackState.CANCELLED)
                self._set_state(PlaybackState.IDLE)

    def _tone(self, seconds: float, handle=None) -> bool:
        self.render_state.tone_on = True
        try:
            return self._wait(seconds, handle)
        finally:
            self.render_state.tone_on = False

    def _pulse(self, symbol: MorseSymbol) -> None:
        try:
            if symbol is MorseSymbol.DIT:
                self.haptics.pulse_light()
            else:
                self.haptics.pulse_medium()
        except Exception:
            logger.exception("Haptic pulse failed")

    def play_sequence(self, characters: Sequence[MorseCharacter], settings, handle=None) -> bool:
        """Play ``characters`` using a snapshot of ``settings``.

        Returns True if the whole sequence played, False if it was cancelled.
        """
        timing = TimingModel.from_settings(settings)
        timeline = build_timeline(characters, timing)
        with self._playback(settings.tone_frequency_hz):
            for seg in timeline:
                if seg.kind == TONE:
                    if settings.haptic_enabled:
                        self._pulse(seg.symbol)
                    ok = self._tone(seg.seconds, handle)
                else:
                    ok = self._wait(seg.seconds, handle)
                if not ok:
                    logger.debug("Playback cancelled")
                    return False
        return True

    def play_character(self, character: MorseCharacter, settings, handle=None) -> bool:
        return self.play_sequence([character], settings, handle)

    def play_feedback_tone(self, correct: bool, handle=None) -> bool:
        """Short high chirp for a correct answer, a falling double beep otherwise."""
        if correct:
            with self._playback(CORRECT_TONE_HZ):
                return self._tone(CORRECT_TONE_SECONDS, handle)
        with self._playback(INCORRECT_TONE_HZ):
            if not self._tone(INCORRECT_TONE_SECONDS, handle):
                return False
            if not self._wait(INCORRECT_GAP_SECONDS, handle):
                return False
            self.render_state.frequency = INCORRECT_SECOND_TONE_HZ
            return self._tone(INCORRECT_SECOND_TONE_SECONDS, handle)

    def speak(self, text: str) -> None:
        try:
            self.speech.speak(text)
        except Exception:
            logger.exception("Speech failed for %r", text)

    def speak_character(self, glyph: str) -> None:
        self.speak(spoken_name(glyph))

    def cancel(self) -> None:
        """Silence output now and abandon the current playback, if any."""
        self._cancel.set()
        self.render_state.tone_on = False

    def stop(self) -> None:
        """Cancel playback, stop speech and release the audio device."""
        self.cancel()
        try:
            self.speech.stop()
        except Exception:
            logger.exception("Stopping speech failed")
        if not self._play_lock.locked():
            self.output.close()
