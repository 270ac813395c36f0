from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Tuple

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from koch_tasks import TaskHandle  # noqa: E402


class InstantHandle(TaskHandle):
    """TaskHandle whose sleeps finish immediately unless cancelled."""

    def __init__(self, name: str, slept: List[Tuple[str, float]]):
        super().__init__(name)
        self._slept = slept

    def sleep(self, seconds: float) -> bool:
        self._slept.append((self.name, seconds))
        return not self.cancelled


class ManualScheduler:
    """Queue tasks and run them only when the test says so."""

    def __init__(self) -> None:
        self.pending: List[Tuple[str, Callable[[TaskHandle], None], InstantHandle]] = []
        self.slept: List[Tuple[str, float]] = []

    def spawn(self, fn, name: str = "task") -> TaskHandle:
        handle = InstantHandle(name, self.slept)
        self.pending.append((name, fn, handle))
        return handle

    def names(self) -> List[str]:
        return [name for name, _, _ in self.pending]

    def run_pending(self, only: str | None = None) -> int:
        """Run the currently queued tasks (not ones they spawn). Returns how many ran."""
        batch = [t for t in self.pending if only is None or t[0] == only]
        self.pending = [t for t in self.pending if t not in batch]
        for _, fn, handle in batch:
            fn(handle)
        return len(batch)


class RecordingHaptics:
    def __init__(self) -> None:
        self.events: List[str] = []

    def pulse_light(self) -> None:
        self.events.append("light")

    def pulse_medium(self) -> None:
        self.events.append("medium")

    def notify_success(self) -> None:
        self.events.append("success")

    def notify_error(self) -> None:
        self.events.append("error")


class RecordingSpeech:
    def __init__(self) -> None:
        self.spoken: List[str] = []
        self.stops = 0

    def speak(self, text: str) -> None:
        self.spoken.append(text)

    def stop(self) -> None:
        self.stops += 1


class FakePlayer:
    """Stands in for ToneScheduler in session tests: returns at once."""

    def __init__(self) -> None:
        self.haptics = RecordingHaptics()
        self.played: List[str] = []
        self.feedback: List[bool] = []
        self.spoken: List[str] = []
        self.cancels = 0
        self.stops = 0
        self.on_device_error = None

    def play_sequence(self, characters, settings, handle=None) -> bool:
        self.played.append(''.join(c.glyph for c in characters))
        return handle is None or not handle.cancelled

    def play_feedback_tone(self, correct: bool, handle=None) -> bool:
        self.feedback.append(correct)
        return True

    def speak(self, text: str) -> None:
        self.spoken.append(text)

    def cancel(self) -> None:
        self.cancels += 1

    def stop(self) -> None:
        self.stops += 1


class FakeOutput:
    """Audio output that records open/close instead of touching a device."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.generator = None
        self.opens = 0
        self.closes = 0

    def open(self, generator) -> None:
        from koch_audio import AudioUnavailableError

        self.opens += 1
        if self.fail:
            raise AudioUnavailableError("no device")
        self.generator = generator

    def close(self) -> None:
        self.closes += 1


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def haptics() -> RecordingHaptics:
    return RecordingHaptics()


@pytest.fixture
def speech() -> RecordingSpeech:
    return RecordingSpeech()


@pytest.fixture
def fake_output() -> FakeOutput:
    return FakeOutput()
