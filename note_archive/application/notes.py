"""
Musical pitch symbols and the alphabets sequences are drawn from.

Notes are written as ``<pitch>:<octave>`` (``C:4``, ``F#:3``, ``Bb:5``) and
lists of notes as comma-separated strings (``"C:4,D:4,E:4"``).
"""

import dataclasses
import re
from typing import Iterable, Sequence, Tuple

from .exceptions import InvalidConfigurationError

_NOTE_PATTERN = re.compile(r"^([A-Ga-g])([#b]?):(-?\d+)$")

_PITCH_CLASSES = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}
_ACCIDENTALS = {"": 0, "#": 1, "b": -1}

_MIDI_NOTE_MIN = 0
_MIDI_NOTE_MAX = 127


@dataclasses.dataclass(frozen=True)
class Note:
    """A single pitch, identified by its name and octave."""

    name: str
    octave: int

    def __post_init__(self):
        if (
            not self.name
            or self.name[0] not in _PITCH_CLASSES
            or self.name[1:] not in _ACCIDENTALS
        ):
            raise InvalidConfigurationError(f"Unknown pitch name '{self.name}'")
        if not _MIDI_NOTE_MIN <= self.midi_number <= _MIDI_NOTE_MAX:
            raise InvalidConfigurationError(
                f"Note {self} is outside the MIDI range "
                f"({_MIDI_NOTE_MIN}-{_MIDI_NOTE_MAX})"
            )

    @property
    def midi_number(self) -> int:
        """The MIDI note number, with C:4 as middle C (60)."""
        pitch_class = _PITCH_CLASSES[self.name[0]] + _ACCIDENTALS[self.name[1:]]
        return (self.octave + 1) * 12 + pitch_class

    @classmethod
    def parse(cls, text: str) -> "Note":
        """Parses a note written as ``<pitch>:<octave>``."""
        match = _NOTE_PATTERN.match(text.strip())
        if match is None:
            raise InvalidConfigurationError(
                f"Invalid note '{text}', expected <pitch>:<octave> (e.g. C#:4)"
            )
        letter, accidental, octave = match.groups()
        return cls(name=letter.upper() + accidental, octave=int(octave))

    def __str__(self) -> str:
        return f"{self.name}:{self.octave}"


def parse_notes(text: str) -> Tuple[Note, ...]:
    """Parses a comma-separated note sequence. Repeated notes are allowed."""
    if not text.strip():
        raise InvalidConfigurationError("Note list must not be empty")
    parts = text.split(",")
    for position, part in enumerate(parts, start=1):
        if not part.strip():
            raise InvalidConfigurationError(
                f"Empty note at position {position} in '{text}'"
            )
    return tuple(Note.parse(part) for part in parts)


def format_sequence(notes: Iterable[Note]) -> str:
    """Inverse of parse_notes."""
    return ",".join(str(note) for note in notes)


@dataclasses.dataclass(frozen=True)
class Alphabet:
    """An ordered, non-empty set of distinct notes."""

    notes: Tuple[Note, ...]

    def __post_init__(self):
        if not self.notes:
            raise InvalidConfigurationError("Alphabet must not be empty")
        seen = set()
        for note in self.notes:
            if note.midi_number in seen:
                raise InvalidConfigurationError(
                    f"Alphabet contains duplicate pitch {note}"
                )
            seen.add(note.midi_number)

    @classmethod
    def from_notes(cls, notes: Sequence[Note]) -> "Alphabet":
        return cls(notes=tuple(notes))

    @classmethod
    def parse(cls, text: str) -> "Alphabet":
        return cls(notes=parse_notes(text))

    def __len__(self) -> int:
        return len(self.notes)

    def __getitem__(self, position: int) -> Note:
        return self.notes[position]

    def __iter__(self):
        return iter(self.notes)

    def __str__(self) -> str:
        return format_sequence(self.notes)
