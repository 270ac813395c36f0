"""Command-line front-end for KochTrainer.

Subcommands:
  stats      show progress and per-character accuracy
  play TEXT  send TEXT as Morse (or write it to a WAV file)
  drill      run a practice drill in the terminal
  set        change playback/feedback settings
  reset      reset progress, settings or both

UI wiring stays here; progression and audio logic live in the koch_* modules.
"""
from dataclasses import replace
from typing import Callable, List, Optional
import argparse
import logging

from koch_audio import ToneScheduler
from koch_config import Settings
from koch_sequence import KochSequence, character_for
from koch_session import DrillMode, SessionEvent, Trainer
from koch_synth import DEFAULT_SAMPLE_RATE, render_sequence, write_wav
from koch_timing import TimingModel

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]

QUIT_COMMANDS = {':q', ':quit'}
REPLAY_COMMANDS = {':r', ':replay'}
SKIP_COMMANDS = {':s', ':skip'}
DELETE_COMMANDS = {':d', ':del'}


def format_stats(trainer: Trainer) -> List[str]:
    """Render the progress summary and the per-character accuracy table."""
    state = trainer.store.state
    lines = [
        f"Characters learned: {state.unlocked_count}/{KochSequence.TOTAL_CHARACTERS}",
        f"Overall accuracy:   {state.overall_accuracy:.0f}%",
        f"Best streak:        {state.best_streak}",
        f"Current streak:     {state.current_streak}",
        f"Total attempts:     {state.total_attempts} ({state.total_correct} correct)",
        f"Session:            {state.session_correct}/{state.session_total} "
        f"({state.session_accuracy:.0f}%)",
        "",
        "Char  Code     Acc   Tries",
    ]
    for row in state.character_report():
        char = character_for(row.glyph)
        label = f"  {char.display_string:<3} {char.code:<7} "
        if row.unlocked:
            lines.append(f"{label}{row.accuracy:3.0f}%  {row.attempts:5d}")
        elif row.is_next:
            lines.append(f"{label}next")
    return lines


class TerminalSpeech:
    """Speech sink that prints what would be spoken."""

    def __init__(self, print_fn: PrintFn = print):
        self.print_fn = print_fn

    def speak(self, text: str) -> None:
        self.print_fn(f"say: {text}")

    def stop(self) -> None:
        pass


def build_player(print_fn: PrintFn = print) -> ToneScheduler:
    return ToneScheduler(speech=TerminalSpeech(print_fn))


def format_answer(glyphs: List[str]) -> str:
    chars = [character_for(g) for g in glyphs]
    return '  '.join(f"{c.display_string} {c.code}" for c in chars if c is not None)


def _event_printer(print_fn: PrintFn) -> Callable[[SessionEvent], None]:
    current: List[str] = []

    def on_event(event: SessionEvent) -> None:
        if event.kind == 'round':
            current[:] = event.value
            print_fn(f"\n[{len(event.value)} character(s)] listen...")
        elif event.kind == 'playing' and not event.value:
            print_fn("> your answer:")
        elif event.kind == 'feedback':
            marks = ''.join('+' if ok else '-' for ok in event.value)
            print_fn(f"result: {marks}")
            print_fn(f"answer: {format_answer(current)}")
        elif event.kind == 'session':
            correct, total, acc = event.value
            print_fn(f"session: {correct}/{total} ({acc:.0f}%)")
        elif event.kind == 'unlocked':
            print_fn(f"*** New character unlocked: {event.value} ***")
        elif event.kind == 'device_error':
            print_fn(f"(no audio: {event.value})")
    return on_event


def run_drill(trainer: Trainer, mode: DrillMode,
              input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Interactive drill loop: each typed line is fed in character by character."""
    session = trainer.start_drill(mode, _event_printer(print_fn))
    if session is None:
        print_fn("A drill is already running.")
        return 1
    print_fn("Type answers and press Enter. :r replay, :s skip, :d delete, :q quit")
    try:
        while True:
            try:
                line = input_fn("").strip()
            except EOFError:
                break
            cmd = line.lower()
            if cmd in QUIT_COMMANDS:
                break
            if cmd in REPLAY_COMMANDS:
                session.replay()
            elif cmd in SKIP_COMMANDS:
                session.skip()
            elif cmd in DELETE_COMMANDS:
                session.delete_last_input()
            else:
                for ch in line.replace(' ', ''):
                    session.handle_keyboard_input(ch)
    except KeyboardInterrupt:
        pass
    finally:
        trainer.stop()
    for line in format_stats(trainer)[:6]:
        print_fn(line)
    return 0


def play_text(trainer: Trainer, text: str, wav_path: Optional[str] = None,
              print_fn: PrintFn = print) -> int:
    characters = [c for c in (character_for(ch) for ch in text) if c is not None]
    if not characters:
        print_fn("Nothing to send: no Morse characters in input.")
        return 1
    settings = trainer.settings
    if wav_path:
        samples = render_sequence(characters, TimingModel.from_settings(settings),
                                  settings.tone_frequency_hz, DEFAULT_SAMPLE_RATE)
        write_wav(wav_path, samples, DEFAULT_SAMPLE_RATE)
        print_fn(f"Wrote {len(samples) / DEFAULT_SAMPLE_RATE:.2f}s to {wav_path}")
        return 0
    try:
        trainer.player.play_sequence(characters, settings)
    except KeyboardInterrupt:
        trainer.player.stop()
    return 0


def apply_settings(trainer: Trainer, args, print_fn: PrintFn = print) -> int:
    changes = {}
    if args.wpm is not None:
        changes['character_wpm'] = args.wpm
    if args.farnsworth is not None:
        changes['farnsworth_wpm'] = args.farnsworth
    if args.tone is not None:
        changes['tone_frequency_hz'] = args.tone
    for name in ('haptic_enabled', 'audio_feedback_enabled', 'speak_answer_enabled', 'eyes_closed_mode'):
        value = getattr(args, name)
        if value is not None:
            changes[name] = value
    settings = replace(trainer.settings, **changes)
    error = settings.validate()
    if error:
        print_fn(f"Invalid setting: {error}")
        return 2
    trainer.update_settings(settings)
    for key, value in settings.to_dict().items():
        print_fn(f"{key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="koch", description="Koch method Morse code trainer")
    parser.add_argument("--config", help="path to the progress/settings JSON file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("stats", help="show progress")

    p_play = sub.add_parser("play", help="send text as Morse")
    p_play.add_argument("text")
    p_play.add_argument("--wav", help="write to a WAV file instead of playing")

    p_drill = sub.add_parser("drill", help="practice")
    p_drill.add_argument("--mode", choices=[m.value for m in DrillMode], default=DrillMode.SINGLE.value)

    p_set = sub.add_parser("set", help="change settings")
    p_set.add_argument("--wpm", type=float, help="character speed")
    p_set.add_argument("--farnsworth", type=float, help="effective (spacing) speed")
    p_set.add_argument("--tone", type=float, help="tone frequency in Hz")
    for flag, dest in (("haptics", "haptic_enabled"), ("audio-feedback", "audio_feedback_enabled"),
                       ("speak", "speak_answer_enabled"), ("eyes-closed", "eyes_closed_mode")):
        p_set.add_argument(f"--{flag}", dest=dest, action="store_true", default=None)
        p_set.add_argument(f"--no-{flag}", dest=dest, action="store_false")

    p_reset = sub.add_parser("reset", help="reset stored data")
    p_reset.add_argument("what", choices=["progress", "settings", "all"])
    return parser


def main(argv: Optional[List[str]] = None, input_fn: InputFn = input,
         print_fn: PrintFn = print, trainer: Optional[Trainer] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if trainer is None:
        trainer = Trainer.load(args.config, player=build_player(print_fn))

    command = args.command or "stats"
    if command == "stats":
        for line in format_stats(trainer):
            print_fn(line)
        return 0
    if command == "play":
        return play_text(trainer, args.text, args.wav, print_fn)
    if command == "drill":
        return run_drill(trainer, DrillMode(args.mode), input_fn, print_fn)
    if command == "set":
        return apply_settings(trainer, args, print_fn)
    if command == "reset":
        if args.what == "progress":
            trainer.reset_progress()
        elif args.what == "settings":
            trainer.reset_settings()
        else:
            trainer.reset_all()
        print_fn(f"Reset {args.what}.")
        return 0
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
