"""Turning a simple note notation into MIDI/WAV files, and a note ear-training game."""

from __future__ import annotations

import random
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

import mido

NOTE_MAP = {
    "C": 60,
    "Db": 61,
    "D": 62,
    "Eb": 63,
    "E": 64,
    "F": 65,
    "Gb": 66,
    "G": 67,
    "Ab": 68,
    "A": 69,
    "Bb": 70,
    "B": 71,
}
TICKS_PER_QUARTER = 96
VELOCITY = 120
VIOLIN_PROGRAM = 40
_ROUNDS_END = 6
_LENGTH = re.compile(r"-?\d+")


class ScoreParseError(ValueError):
    """The notation cannot be turned into notes."""


@dataclass(frozen=True)
class ScoreNote:
    """One note: MIDI pitch, ticks of silence before it, and its length in ticks."""

    pitch: int
    delay: int
    duration: int


@dataclass(frozen=True)
class Outcome:
    """Result of one answer in an ear-training round."""

    correct: bool
    answer: str
    errors: int
    advanced: bool
    finished: bool


def _is_note_letter(ch: str) -> bool:
    return "A" <= ch <= "G"


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def octave(base: int, level: int) -> int:
    """Pitch of pitch class ``base`` in octave ``level`` (capped at 10, 8-bit arithmetic)."""
    base &= 0xFF
    level &= 0xFF
    if level > 10:
        level = 10
    if level == 0:
        return base
    result = (base + 12 * level) & 0xFF
    if result > 127:
        result -= 12
    return result


def note_name(note: int) -> str:
    """Name of the pitch class of a MIDI note, such as "C" or "Db"."""
    for name, value in NOTE_MAP.items():
        if value % 12 == note % 12:
            return name
    return ""


def parse_note(note: str) -> int:
    """MIDI pitch of a single note such as "C#6"; the octave defaults to 5."""
    base = 0
    level = 0
    for ch in note.replace(" ", ""):
        if _is_note_letter(ch):
            base = NOTE_MAP[ch] % 12
        elif ch == "b":
            base = (base - 1) & 0xFF
        elif ch == "#":
            base = (base + 1) & 0xFF
        elif _is_digit(ch):
            level = (level * 10 + int(ch)) & 0xFF
    if level == 0:
        level = 5
    return octave(base, level)


def _ticks(length: int) -> int:
    if length >= 0:
        return (TICKS_PER_QUARTER * (1 << length)) & 0xFFFFFFFF if length < 32 else 0
    if -length >= 32:
        raise ScoreParseError(f"音长超出范围: {length}")
    return TICKS_PER_QUARTER // (1 << -length)


def parse_score(text: str) -> list[ScoreNote]:
    """Parse notation like "CCGGAAGR FF<1" into notes.

    A letter A-G is a note, "b" and "#" lower or raise it, digits give the octave,
    "R" is a rest, and "<n" sets the length to a quarter times 2**n.
    """
    k = text.replace(" ", "")
    notes: list[ScoreNote] = []
    delay = 0
    i = 0
    while i < len(k):
        base = 0
        level = 0
        rest = False
        length_text = ""
        while True:
            ch = k[i]
            if ch == "R":
                rest = True
                i += 1
            elif _is_note_letter(ch):
                base = NOTE_MAP[ch] % 12
                i += 1
            elif ch == "b":
                base = (base - 1) & 0xFF
                i += 1
            elif ch == "#":
                base = (base + 1) & 0xFF
                i += 1
            elif _is_digit(ch):
                level = (level * 10 + int(ch)) & 0xFF
                i += 1
            elif ch == "<":
                i += 1
                start = i
                while i < len(k) and (k[i] == "-" or _is_digit(k[i])):
                    i += 1
                length_text += k[start:i]
            else:
                raise ScoreParseError(f"无法解析第{i}个位置的{ch}字符")
            if i >= len(k) or _is_note_letter(k[i]) or k[i] == "R":
                break
        length = int(length_text) if _LENGTH.fullmatch(length_text) else 0
        if rest:
            delay = _ticks(length)
            continue
        if level == 0:
            level = 5
        notes.append(ScoreNote(octave(base, level), delay, _ticks(length)))
        delay = 0
    return notes


def write_midi(path: str | Path, text: str) -> None:
    """Write the notation as a violin MIDI file; an existing file is left as it is."""
    path = Path(path)
    if path.exists():
        return
    notes = parse_score(text)
    for note in notes:
        if note.pitch > 127:
            raise ScoreParseError(f"音高超出范围: {note.pitch}")
    track = mido.MidiTrack(
        [
            mido.MetaMessage("time_signature", numerator=4, denominator=4, time=0),
            mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(60), time=0),
            mido.MetaMessage("instrument_name", name="Violin", time=0),
            mido.Message("program_change", channel=0, program=VIOLIN_PROGRAM, time=0),
        ]
    )
    for note in notes:
        track.append(
            mido.Message("note_on", channel=0, note=note.pitch, velocity=VELOCITY, time=note.delay)
        )
        track.append(
            mido.Message("note_off", channel=0, note=note.pitch, velocity=0, time=note.duration)
        )
    track.append(mido.MetaMessage("end_of_track", time=0))
    midi_file = mido.MidiFile(type=0, ticks_per_beat=TICKS_PER_QUARTER)
    midi_file.tracks.append(track)
    midi_file.save(str(path))


def render_wav(midi_path: str | Path, wav_path: str | Path) -> None:
    """Render a MIDI file to WAV with timidity."""
    subprocess.run(
        ["timidity", str(midi_path), "-Ow", "-o", str(wav_path)],
        check=True,
        capture_output=True,
    )


def str_to_music(text: str, midi_path: str | Path) -> str:
    """Write the notation to ``midi_path`` and render it; returns the WAV path."""
    midi_path = str(midi_path)
    write_midi(midi_path, text)
    wav_path = midi_path.replace(".mid", ".wav")
    render_wav(midi_path, wav_path)
    return wav_path


def random_target(rng: random.Random | None = None) -> int:
    """A random pitch for the ear-training game."""
    return 55 + (rng or random).randrange(34)


class EarTraining:
    """Five rounds of naming a played note; a team game allows more mistakes."""

    def __init__(self, team: bool = False, rng: random.Random | None = None) -> None:
        self.team = team
        self.max_errors = 10 if team else 3
        self._rng = rng or random.Random()
        self.scores: dict[int, float] = {}
        self.round = 1
        self.errors = 0
        self.target = 0
        self.answer = ""
        self.new_target()

    @property
    def finished(self) -> bool:
        return self.round == _ROUNDS_END

    def new_target(self) -> str:
        """Pick the next note and return its spelling, such as "C#6"."""
        self.errors = 0
        self.target = random_target(self._rng)
        self.answer = note_name(self.target) + str(self.target // 12)
        return self.answer

    def submit(self, user_id: int, note: str) -> Outcome:
        """Judge one answer, update the scores and move on when the round is over."""
        if self.finished:
            raise RuntimeError("练习已结束")
        correct = parse_note(note) == self.target
        if not correct:
            self.errors += 1
        answer, errors = self.answer, self.errors
        if not correct and errors < self.max_errors:
            return Outcome(False, answer, errors, False, False)
        if self.team:
            gained = 1.0 if errors != self.max_errors else None
        else:
            gained = {0: 1.0, 1: 0.5, 2: 0.2}.get(errors)
        if gained is not None:
            self.scores[user_id] = self.scores.get(user_id, 0.0) + gained
        self.round += 1
        if not self.finished:
            self.new_target()
        return Outcome(correct, answer, errors, True, self.finished)