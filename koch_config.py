"""Settings and persistence for KochTrainer.

Progress and settings are kept together in one JSON file, under the keys
``userProgress`` and ``appSettings``, and restored between launches.
"""
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional, Tuple
import json
import logging
import os
import sys

from koch_progress import ProgressState

logger = logging.getLogger(__name__)

PROGRESS_KEY = 'userProgress'
SETTINGS_KEY = 'appSettings'

# Ranges offered by the host; the core itself accepts any positive value
CHARACTER_WPM_RANGE = (15.0, 35.0)
FARNSWORTH_WPM_RANGE = (3.0, 20.0)
TONE_FREQUENCY_RANGE = (400.0, 1000.0)


@dataclass(frozen=True)
class Settings:
    """User-adjustable playback and feedback options."""
    character_wpm: float = 20.0
    farnsworth_wpm: float = 5.0
    tone_frequency_hz: float = 700.0
    haptic_enabled: bool = True
    audio_feedback_enabled: bool = True
    speak_answer_enabled: bool = True
    eyes_closed_mode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        """Build from a dict; unknown keys are ignored, missing keys defaulted.

        Raises:
            ValueError: a flag is not a JSON boolean or a number is not numeric.
        """
        defaults = cls()
        values = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            value = data[f.name]
            if isinstance(getattr(defaults, f.name), bool):
                if not isinstance(value, bool):
                    raise ValueError(f"{f.name} must be true or false, got {value!r}")
                values[f.name] = value
            else:
                if isinstance(value, bool):
                    raise ValueError(f"{f.name} must be a number, got {value!r}")
                values[f.name] = float(value)
        return cls(**values)

    def validate(self) -> Optional[str]:
        """Return an error message if a value is outside the host ranges, else None."""
        checks = (
            ('Character speed', self.character_wpm, CHARACTER_WPM_RANGE),
            ('Farnsworth speed', self.farnsworth_wpm, FARNSWORTH_WPM_RANGE),
            ('Tone frequency', self.tone_frequency_hz, TONE_FREQUENCY_RANGE),
        )
        for label, value, (lo, hi) in checks:
            if value < lo or value > hi:
                return f"{label} must be between {lo:g} and {hi:g}"
        return None


def get_config_path() -> str:
    """Get platform-appropriate config file path.

    Returns:
        Path to the config file based on the platform.
    """
    if sys.platform == 'win32':
        base = os.environ.get('LOCALAPPDATA', os.path.expanduser('~'))
        config_dir = os.path.join(base, 'KochTrainer')
    elif sys.platform == 'darwin':
        config_dir = os.path.join(os.path.expanduser('~'), 'Library', 'Application Support', 'KochTrainer')
    else:
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.join(os.path.expanduser('~'), '.config'))
        config_dir = os.path.join(xdg_config, 'kochtrainer')

    os.makedirs(config_dir, exist_ok=True)
    return os.path.join(config_dir, 'config.json')


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load the raw configuration dict, or an empty dict if absent or corrupt."""
    config_path = path or get_config_path()
    if not os.path.exists(config_path):
        return {}

    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level is not an object", config_path)
        return {}
    return data


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> None:
    """Write the configuration dict. Failures are logged, not raised."""
    config_path = path or get_config_path()
    try:
        with open(config_path, 'w') as f:
            json.dump(config, indent=2, fp=f)
    except IOError as e:
        logger.warning("Could not save config to %s: %s", config_path, e)


def load_state(path: Optional[str] = None) -> Tuple[ProgressState, Settings]:
    """Load progress and settings, falling back to defaults for either part."""
    config = load_config(path)

    progress = ProgressState()
    if PROGRESS_KEY in config:
        try:
            progress = ProgressState.from_dict(config[PROGRESS_KEY])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Stored progress is corrupt, starting fresh: %s", e)

    settings = Settings()
    if SETTINGS_KEY in config:
        try:
            settings = Settings.from_dict(config[SETTINGS_KEY])
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning("Stored settings are corrupt, using defaults: %s", e)

    return progress, settings


def save_state(progress: ProgressState, settings: Settings, path: Optional[str] = None) -> None:
    save_config({
        PROGRESS_KEY: progress.to_dict(),
        SETTINGS_KEY: settings.to_dict(),
    }, path)
