"""Drill session controllers for KochTrainer.

A DrillSession runs practice rounds end to end: pick characters, play them,
collect answers, score each position into the ProgressStore, report any
unlock, then advance to the next round after a short pause.

Three variants share that flow:
  - SingleCharacterDrill: one character, one answer
  - HeadCopyDrill: 3-5 characters, typed after playback finishes
  - LiveCopyDrill: 5-20 characters, typed while they play

Playback, feedback and auto-advance run as cancellable tasks so skip/stop
take effect immediately. The host observes the session through
``update_ui_cb``, which receives SessionEvent objects.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional
import logging
import random
import threading

from koch_audio import ToneScheduler
from koch_config import Settings, load_state, save_state
from koch_progress import ProgressStore
from koch_selector import WeightedSelector
from koch_sequence import MorseCharacter, spoken_name
from koch_tasks import TaskHandle, ThreadScheduler

logger = logging.getLogger(__name__)

GRACE_SECONDS = 1.5
SPEECH_DELAY_SECONDS = 0.2


class DrillMode(Enum):
    SINGLE = 'single'
    HEAD_COPY = 'head_copy'
    LIVE_COPY = 'live_copy'


class FeedbackState(Enum):
    NONE = 'none'
    CORRECT = 'correct'
    INCORRECT = 'incorrect'


@dataclass(frozen=True)
class SessionEvent:
    """State change published to the host.

    kind is one of: 'round', 'playing', 'input', 'feedback', 'session',
    'unlocked', 'device_error', 'stopped'.
    """
    kind: str
    value: Any = None


class DrillSession:
    """Base controller; subclasses set the round shape and input rules."""
    mode: DrillMode = DrillMode.HEAD_COPY
    speaks_answer = True
    input_while_playing = False
    grace_seconds: Optional[float] = GRACE_SECONDS
    advance_seconds = 2.0
    advance_seconds_with_speech = 3.0

    def __init__(self, store: ProgressStore, player, settings: Settings,
                 scheduler=None, update_ui_cb: Optional[Callable[[SessionEvent], None]] = None,
                 rng: Optional[random.Random] = None):
        self.store = store
        self.player = player
        self.settings = settings
        self.scheduler = scheduler or ThreadScheduler()
        self.update_ui_cb = update_ui_cb
        self.rng = rng or random.Random()
        self.lock = threading.RLock()

        self.active = False
        self.is_playing = False
        self.current_sequence: List[MorseCharacter] = []
        self.user_input: List[str] = []
        self.feedback_results: List[Optional[bool]] = []
        self.is_submitted = False
        self.just_unlocked: Optional[str] = None
        self._round = 0
        self._playback_id = 0
        self._tasks: List[TaskHandle] = []

    # ---- observable state ----
    def _emit(self, kind: str, value: Any = None) -> None:
        if self.update_ui_cb is not None:
            self.update_ui_cb(SessionEvent(kind, value))

    def _set_playing(self, playing: bool) -> None:
        if self.is_playing != playing:
            self.is_playing = playing
            self._emit('playing', playing)

    @property
    def available_characters(self) -> List[MorseCharacter]:
        return self.store.state.available_characters

    @property
    def sequence_length(self) -> int:
        return len(self.current_sequence)

    @property
    def session_correct(self) -> int:
        return self.store.state.session_correct

    @property
    def session_total(self) -> int:
        return self.store.state.session_total

    @property
    def session_accuracy(self) -> float:
        return self.store.state.session_accuracy

    def is_valid_answer(self, glyph: str) -> bool:
        return self.store.state.is_available(glyph)

    # ---- task bookkeeping ----
    def _spawn(self, fn: Callable[[TaskHandle], None], name: str) -> TaskHandle:
        handle = self.scheduler.spawn(fn, name)
        self._tasks.append(handle)
        return handle

    def _cancel_tasks(self) -> None:
        tasks, self._tasks = self._tasks, []
        for handle in tasks:
            handle.cancel()
        self.player.cancel()

    # ---- round lifecycle ----
    def choose_length(self) -> int:
        return self.rng.randint(3, 5)

    def choose_sequence(self) -> List[MorseCharacter]:
        candidates = self.available_characters
        selector = WeightedSelector(self.store.state, self.rng)
        return selector.weighted_sequence(candidates, self.choose_length())

    def start(self) -> None:
        """Begin the session and play the first round."""
        with self.lock:
            self.active = True
            if hasattr(self.player, 'on_device_error'):
                self.player.on_device_error = lambda e: self._emit('device_error', str(e))
            if self.store.ensure_fresh_session():
                self._emit('session', self._session_summary())
            self.start_new_round()

    def start_new_round(self) -> None:
        with self.lock:
            if not self.active:
                return
            self._cancel_tasks()
            self._round += 1
            self.is_submitted = False
            self.user_input = []
            self.just_unlocked = None
            self.current_sequence = self.choose_sequence()
            self.feedback_results = [None] * len(self.current_sequence)
            if not self.current_sequence:
                logger.warning("No characters available for a new round")
                return
            logger.debug("Round %d: %s", self._round, ''.join(c.glyph for c in self.current_sequence))
            self._emit('round', [c.glyph for c in self.current_sequence])
            self._schedule_playback()

    def _schedule_playback(self) -> None:
        round_id = self._round
        self._playback_id += 1
        playback_id = self._playback_id
        sequence = list(self.current_sequence)
        settings = self.settings
        self._set_playing(True)

        def _play(handle: TaskHandle) -> None:
            completed = False
            try:
                if not handle.cancelled:
                    completed = self.player.play_sequence(sequence, settings, handle)
            finally:
                with self.lock:
                    current = self._playback_id == playback_id
                    if current:
                        self._set_playing(False)
                    if current and completed and not handle.cancelled:
                        self._schedule_grace(round_id)

        self._spawn(_play, 'playback')

    def _schedule_grace(self, round_id: int) -> None:
        """Auto-submit once the grace period after playback has run out."""
        if self.grace_seconds is None or self.is_submitted:
            return
        grace = self.grace_seconds

        def _grace(handle: TaskHandle) -> None:
            if not handle.sleep(grace):
                return
            with self.lock:
                if self._round == round_id and not self.is_submitted:
                    logger.debug("Grace period over, submitting %d/%d answers",
                                 len(self.user_input), self.sequence_length)
                    self.submit()

        self._spawn(_grace, 'grace')

    def replay(self) -> None:
        with self.lock:
            if not self.active or not self.current_sequence or self.is_submitted:
                return
            self._cancel_tasks()
            self._schedule_playback()

    def skip(self) -> None:
        self.start_new_round()

    # ---- input ----
    def handle_keyboard_input(self, glyph: str) -> bool:
        """Accept a typed glyph if it is in the unlocked set. Returns True if taken."""
        if not self.is_valid_answer(glyph):
            return False
        return self.append_input(glyph.upper())

    def append_input(self, glyph: str) -> bool:
        with self.lock:
            if not self.active or self.is_submitted or not self.current_sequence:
                return False
            if self.is_playing and not self.input_while_playing:
                return False
            if len(self.user_input) >= self.sequence_length:
                return False
            self.user_input.append(glyph)
            self._emit('input', list(self.user_input))
            if len(self.user_input) == self.sequence_length:
                self.submit()
            return True

    def delete_last_input(self) -> None:
        with self.lock:
            if self.is_submitted or not self.user_input:
                return
            self.user_input.pop()
            self._emit('input', list(self.user_input))

    # ---- scoring ----
    def _session_summary(self):
        state = self.store.state
        return (state.session_correct, state.session_total, state.session_accuracy)

    def answer_text(self) -> str:
        return ', '.join(spoken_name(c.glyph) for c in self.current_sequence)

    def submit(self) -> None:
        """Score every position; unanswered positions count as incorrect."""
        with self.lock:
            if self.is_submitted or not self.current_sequence:
                return
            assert len(self.user_input) <= self.sequence_length
            self.is_submitted = True

            results = []
            for i, expected in enumerate(self.current_sequence):
                results.append(i < len(self.user_input) and self.user_input[i] == expected.glyph)
            self.feedback_results = results
            delta = self.store.record_attempts(
                (c.glyph, ok) for c, ok in zip(self.current_sequence, results))

            self._emit('feedback', list(results))
            self._emit('session', self._session_summary())
            if delta:
                self.just_unlocked = delta.last
                self._emit('unlocked', delta.last)

            all_correct = all(results)
            if self.settings.haptic_enabled:
                self._notify_haptic(all_correct)
            self._schedule_feedback(all_correct)
            self._schedule_advance()

    def _notify_haptic(self, success: bool) -> None:
        haptics = getattr(self.player, 'haptics', None)
        if haptics is None:
            return
        try:
            if success:
                haptics.notify_success()
            else:
                haptics.notify_error()
        except Exception:
            logger.exception("Haptic notification failed")

    @property
    def _will_speak(self) -> bool:
        return self.speaks_answer and self.settings.speak_answer_enabled

    def _schedule_feedback(self, correct: bool) -> None:
        settings = self.settings
        # eyes-closed mode relies on the tone in place of visual feedback
        tone = settings.audio_feedback_enabled or settings.eyes_closed_mode
        speak = self._will_speak
        text = self.answer_text()
        if not tone and not speak:
            return

        def _feedback(handle: TaskHandle) -> None:
            if tone:
                self.player.play_feedback_tone(correct, handle)
            if speak and handle.sleep(SPEECH_DELAY_SECONDS):
                self.player.speak(text)

        self._spawn(_feedback, 'feedback')

    def _schedule_advance(self) -> None:
        round_id = self._round
        delay = self.advance_seconds_with_speech if self._will_speak else self.advance_seconds

        def _advance(handle: TaskHandle) -> None:
            if not handle.sleep(delay):
                return
            with self.lock:
                if self._round == round_id and self.is_submitted:
                    self.start_new_round()

        self._spawn(_advance, 'advance')

    # ---- teardown ----
    def reset_session(self) -> None:
        with self.lock:
            self.store.reset_session()
            self.is_submitted = False
            self.current_sequence = []
            self.user_input = []
            self.feedback_results = []
            self.just_unlocked = None
            self._emit('session', self._session_summary())

    def stop(self) -> None:
        """Cancel all pending work and silence audio. Safe to call repeatedly."""
        with self.lock:
            was_active = self.active
            self.active = False
            self._cancel_tasks()
            self.player.stop()
            self._round += 1
            self._playback_id += 1
            self._set_playing(False)
            if was_active:
                self._emit('stopped')


class SingleCharacterDrill(DrillSession):
    """One weighted character per round, answered once after it plays."""
    mode = DrillMode.SINGLE
    grace_seconds = None
    advance_seconds = 1.5
    advance_seconds_with_speech = 2.0

    def choose_length(self) -> int:
        return 1

    @property
    def current_character(self) -> Optional[MorseCharacter]:
        return self.current_sequence[0] if self.current_sequence else None

    @property
    def feedback_state(self) -> FeedbackState:
        if not self.is_submitted:
            return FeedbackState.NONE
        return FeedbackState.CORRECT if self.feedback_results[0] else FeedbackState.INCORRECT

    @property
    def showing_answer(self) -> bool:
        return self.is_submitted


class HeadCopyDrill(DrillSession):
    """Copy a short group in your head, type it after playback ends."""
    mode = DrillMode.HEAD_COPY


class LiveCopyDrill(DrillSession):
    """Type characters while they are being sent."""
    mode = DrillMode.LIVE_COPY
    speaks_answer = False
    input_while_playing = True

    def choose_length(self) -> int:
        max_length = min(20, 5 + len(self.available_characters))
        return self.rng.randint(5, max_length)


DRILLS = {
    DrillMode.SINGLE: SingleCharacterDrill,
    DrillMode.HEAD_COPY: HeadCopyDrill,
    DrillMode.LIVE_COPY: LiveCopyDrill,
}


class Trainer:
    """Owns progress, settings and at most one running drill.

    Every change to progress or settings is written back through
    ``save_state`` unless ``persist`` is False.
    """

    def __init__(self, progress=None, settings: Optional[Settings] = None, player=None,
                 scheduler=None, config_path: Optional[str] = None, persist: bool = True,
                 rng: Optional[random.Random] = None):
        self.settings = settings or Settings()
        self.config_path = config_path
        self.persist = persist
        self.store = ProgressStore(progress, save_hook=self._save_progress)
        self.player = player if player is not None else ToneScheduler()
        self.scheduler = scheduler or ThreadScheduler()
        self.rng = rng
        self.session: Optional[DrillSession] = None
        # drill tasks and the host both write the config file
        self._save_lock = threading.Lock()

    @classmethod
    def load(cls, config_path: Optional[str] = None, **kwargs) -> 'Trainer':
        progress, settings = load_state(config_path)
        return cls(progress, settings, config_path=config_path, **kwargs)

    def _save_progress(self, state) -> None:
        if not self.persist:
            return
        with self._save_lock:
            save_state(state, self.settings, self.config_path)

    def save(self) -> None:
        self._save_progress(self.store.state)

    def start_drill(self, mode: DrillMode, update_ui_cb=None) -> Optional[DrillSession]:
        """Start a drill of ``mode``. Returns None if one is already running."""
        if self.session is not None and self.session.active:
            logger.warning("A %s drill is already running; stop it first", self.session.mode.value)
            return None
        session = DRILLS[mode](self.store, self.player, self.settings, self.scheduler,
                               update_ui_cb, self.rng)
        self.session = session
        session.start()
        return session

    def stop(self) -> None:
        if self.session is not None:
            self.session.stop()
        self.player.stop()

    def update_settings(self, settings: Settings) -> None:
        """Apply new settings; a running drill picks them up on its next playback."""
        self.settings = settings
        if self.session is not None:
            self.session.settings = settings
        self.save()

    def reset_progress(self) -> None:
        self.stop()
        self.store.reset_progress()

    def reset_settings(self) -> None:
        self.update_settings(Settings())

    def reset_all(self) -> None:
        self.reset_progress()
        self.reset_settings()
