import json
from pathlib import Path

import pytest

from koch_config import (
    PROGRESS_KEY,
    SETTINGS_KEY,
    Settings,
    load_config,
    load_state,
    save_config,
    save_state,
)
from koch_progress import ProgressState


def test_settings_defaults() -> None:
    s = Settings()
    assert (s.character_wpm, s.farnsworth_wpm, s.tone_frequency_hz) == (20.0, 5.0, 700.0)
    assert s.haptic_enabled and s.audio_feedback_enabled and s.speak_answer_enabled
    assert s.eyes_closed_mode is False
    assert s.validate() is None


def test_settings_from_dict_coerces_and_ignores_unknown() -> None:
    s = Settings.from_dict({'character_wpm': 25, 'eyes_closed_mode': True, 'volume': 0.5})
    assert s.character_wpm == 25.0
    assert isinstance(s.character_wpm, float)
    assert s.eyes_closed_mode is True
    assert s.farnsworth_wpm == 5.0


@pytest.mark.parametrize("data", [
    {'haptic_enabled': 'false'},
    {'speak_answer_enabled': 0},
    {'character_wpm': True},
])
def test_settings_from_dict_rejects_wrong_types(data) -> None:
    with pytest.raises(ValueError):
        Settings.from_dict(data)


def test_string_flag_falls_back_to_defaults(tmp_path: Path) -> None:
    path = str(tmp_path / "config.json")
    save_config({SETTINGS_KEY: {'haptic_enabled': 'false', 'character_wpm': 30}}, path)
    _, settings = load_state(path)
    assert settings == Settings()


@pytest.mark.parametrize("kwargs, label", [
    ({'character_wpm': 40.0}, 'Character speed'),
    ({'farnsworth_wpm': 2.0}, 'Farnsworth speed'),
    ({'tone_frequency_hz': 1200.0}, 'Tone frequency'),
])
def test_settings_validate_ranges(kwargs, label) -> None:
    error = Settings(**kwargs).validate()
    assert error is not None
    assert error.startswith(label)


def test_missing_config_is_empty(tmp_path: Path) -> None:
    assert load_config(str(tmp_path / "absent.json")) == {}


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_unreadable_config_falls_back(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content)
    assert load_config(str(path)) == {}
    progress, settings = load_state(str(path))
    assert progress.unlocked_count == 2
    assert settings == Settings()


def test_save_and_load_state(tmp_path: Path) -> None:
    path = str(tmp_path / "config.json")
    progress = ProgressState()
    progress.record_attempt('K', True)
    progress.record_attempt('M', False)
    progress.unlock_next_characters(3)
    settings = Settings(character_wpm=25.0, speak_answer_enabled=False)

    save_state(progress, settings, path)
    with open(path) as f:
        raw = json.load(f)
    assert set(raw) == {PROGRESS_KEY, SETTINGS_KEY}

    loaded_progress, loaded_settings = load_state(path)
    assert loaded_settings == settings
    assert loaded_progress.unlocked_count == 5
    assert loaded_progress.history('K') == [True]
    assert loaded_progress.history('M') == [False]
    assert loaded_progress.total_attempts == 2


def test_corrupt_progress_keeps_settings(tmp_path: Path) -> None:
    path = str(tmp_path / "config.json")
    save_config({
        PROGRESS_KEY: {'unlocked_count': 99},
        SETTINGS_KEY: {'tone_frequency_hz': 600},
    }, path)
    progress, settings = load_state(path)
    assert progress.unlocked_count == 2
    assert settings.tone_frequency_hz == 600.0


def test_save_failure_is_logged(tmp_path: Path, caplog) -> None:
    target = tmp_path / "missing-dir" / "config.json"
    save_config({'a': 1}, str(target))
    assert not target.exists()
    assert "Could not save config" in caplog.text
