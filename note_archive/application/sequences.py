"""
Lazy enumeration of every fixed-length note sequence over an alphabet.

The sequence space is treated as an odometer of ``length`` base-``n`` digits:
index ``i`` decomposes into digits with the leftmost note as the most
significant one, so enumeration in increasing index order advances the
rightmost note fastest. Any index can be decoded directly, which makes the
enumeration restartable from a stored index without replaying earlier steps.
"""

import logging
from typing import Iterator, List, Optional, Tuple

from .exceptions import InvalidConfigurationError
from .notes import Alphabet, Note

logger = logging.getLogger(__name__)

NoteSequence = Tuple[Note, ...]


class SequenceGenerator:
    """Enumerates the ``n ** length`` sequences over an alphabet in order."""

    def __init__(
        self,
        alphabet: Alphabet,
        length: int,
        min_length: Optional[int] = None,
    ):
        """
        Initializes the generator.

        Args:
            alphabet: The notes sequences are drawn from.
            length: Number of notes per sequence, at least 1.
            min_length: Optional lower bound imposed by the caller on length.

        Raises:
            InvalidConfigurationError: If length is not a positive integer or
                                       is below min_length.
        """

        if isinstance(length, bool) or not isinstance(length, int) or length < 1:
            raise InvalidConfigurationError(
                f"Sequence length must be a positive integer, got {length!r}"
            )
        if min_length is not None and length < min_length:
            raise InvalidConfigurationError(
                f"Length must be >= the number of notes in the sequence "
                f"({length} < {min_length})"
            )

        self.alphabet = alphabet
        self.length = length

    @property
    def space_size(self) -> int:
        """Total number of sequences, computed exactly."""
        return len(self.alphabet) ** self.length

    def digits_at(self, index: int) -> List[int]:
        """Decomposes an index into its alphabet positions, most significant first."""
        if index < 0 or index >= self.space_size:
            raise InvalidConfigurationError(
                f"Sequence index {index} is outside [0, {self.space_size})"
            )

        base = len(self.alphabet)
        digits = [0] * self.length
        remainder = index
        for position in reversed(range(self.length)):
            remainder, digits[position] = divmod(remainder, base)
        return digits

    def sequence_at(self, index: int) -> NoteSequence:
        """Returns the sequence enumeration would produce at ``index``."""
        return tuple(self.alphabet[digit] for digit in self.digits_at(index))

    def iter_from(
        self, start: int = 0, max_count: Optional[int] = None
    ) -> Iterator[Tuple[int, NoteSequence]]:
        """
        Yields ``(index, sequence)`` pairs starting at ``start``.

        Each step advances the odometer in place, so the working set stays
        at ``length`` digits regardless of how large the space is.

        Args:
            start: Index of the first sequence to produce.
            max_count: Stop after this many sequences (at least 1). Defaults
                       to running until the space is exhausted.

        Raises:
            InvalidConfigurationError: If max_count is below 1 or start is
                                       outside the sequence space.
        """

        if max_count is not None and max_count < 1:
            raise InvalidConfigurationError(
                f"Count must be greater than 0, got {max_count}"
            )

        digits = self.digits_at(start)
        notes = self.alphabet.notes
        base = len(notes)
        index = start
        emitted = 0

        while True:
            yield index, tuple(notes[digit] for digit in digits)

            emitted += 1
            if max_count is not None and emitted >= max_count:
                return

            position = self.length - 1
            while position >= 0:
                digits[position] += 1
                if digits[position] < base:
                    break
                digits[position] = 0
                position -= 1
            if position < 0:
                logger.debug(f"Sequence space exhausted after index {index}")
                return
            index += 1

    def __iter__(self) -> Iterator[NoteSequence]:
        for _, sequence in self.iter_from():
            yield sequence
