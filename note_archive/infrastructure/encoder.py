"""Mido implementation of the SequenceEncoder port."""

import hashlib
import io
import logging
from typing import Sequence

import mido

from ..application.domain import Artifact, SequenceEncoder
from ..application.exceptions import EncodingError
from ..application.notes import Note, format_sequence

_SHA256_HEX_LENGTH = 64


class MidoEncoder(SequenceEncoder):
    """
    An adapter that writes a sequence as a Format 0 (single track) MIDI file
    and keys it by the SHA256 of the file bytes.

    Every note is played for ``note_ticks`` ticks, one after the other, so two
    sequences produce identical bytes only if they contain the same notes in
    the same order.
    """

    def __init__(
        self,
        ticks_per_beat: int = 1,
        velocity: int = 100,
        note_ticks: int = 1,
        extension: str = "mid",
    ):
        """Initializes the encoder."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.ticks_per_beat = ticks_per_beat
        self.velocity = velocity
        self.note_ticks = note_ticks
        self.extension = extension

    @property
    def hash_length(self) -> int:
        return _SHA256_HEX_LENGTH

    def _build_midi_file(self, sequence: Sequence[Note]) -> mido.MidiFile:
        """Lays the notes out back to back on a single track."""
        midi_file = mido.MidiFile(type=0, ticks_per_beat=self.ticks_per_beat)
        track = mido.MidiTrack()
        midi_file.tracks.append(track)

        for note in sequence:
            track.append(mido.Message(
                "note_on", note=note.midi_number, velocity=self.velocity, time=0
            ))
            track.append(mido.Message(
                "note_off", note=note.midi_number, velocity=0, time=self.note_ticks
            ))

        track.append(mido.MetaMessage("end_of_track", time=0))
        return midi_file

    def encode(self, sequence: Sequence[Note]) -> Artifact:
        """
        Encodes a sequence into MIDI bytes.

        This public method fulfills the SequenceEncoder port contract.

        Args:
            sequence: The notes to encode, in playing order.

        Returns:
            An Artifact holding the file bytes and their SHA256 hex digest.

        Raises:
            EncodingError: If the sequence is empty or mido rejects a value.
        """

        if not sequence:
            raise EncodingError("Cannot encode an empty note sequence")

        try:
            midi_file = self._build_midi_file(sequence)
            buffer = io.BytesIO()
            midi_file.save(file=buffer)
        except (ValueError, TypeError) as e:
            raise EncodingError(
                f"Failed to encode {format_sequence(sequence)}: {e}"
            ) from e

        data = buffer.getvalue()
        return Artifact(
            data=data,
            content_hash=hashlib.sha256(data).hexdigest(),
            extension=self.extension,
            label=format_sequence(sequence),
        )
