"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the application's business logic operates on, together with
the ports (interfaces) that infrastructure adapters implement.
"""

import dataclasses
import enum
from pathlib import Path

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

from .notes import Alphabet, Note


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class PartitionGeometry:
    """
    How a content hash is split into nested directories: ``partition_depth``
    levels, each named by the next ``partition_size`` hash characters.
    """

    partition_size: int
    partition_depth: int

    @property
    def prefix_length(self) -> int:
        """Number of leading hash characters consumed by directory levels."""
        return self.partition_size * self.partition_depth

    @property
    def is_flat(self) -> bool:
        return self.partition_depth == 0


@dataclasses.dataclass(frozen=True)
class Artifact:
    """The encoded output for one sequence, keyed by its content hash."""

    data: bytes
    content_hash: str
    extension: str
    label: str = ""
    sequence_index: Optional[int] = None


class ArchiveState(enum.Enum):
    """Lifecycle of an archive writer. CLOSED is terminal."""

    OPEN = "open"
    CLOSED = "closed"


@dataclasses.dataclass(frozen=True)
class BatchRecord:
    """A flushed batch: its ordinal, where it was written and its size."""

    number: int
    location: Path
    item_count: int


@dataclasses.dataclass(frozen=True)
class ArchiveSummary:
    """Returned by a writer when it closes."""

    target: Path
    batches: Tuple[BatchRecord, ...]

    @property
    def artifact_count(self) -> int:
        return sum(batch.item_count for batch in self.batches)


@dataclasses.dataclass(frozen=True)
class BatchJob:
    """The validated parameters of one batch generation run."""

    alphabet: Alphabet
    length: int
    target: Path
    partition_depth: int
    batch_size: int
    max_files: float = 4096.0
    count: Optional[int] = None
    start: int = 0
    min_length: Optional[int] = None
    progress_interval: float = 1.0


# --- Ports (Interfaces) ---

class SequenceEncoder(ABC):
    """A port for turning a note sequence into a content-addressed artifact."""

    @property
    @abstractmethod
    def hash_length(self) -> int:
        """Length of the hexadecimal content hashes this encoder produces."""
        pass

    @abstractmethod
    def encode(self, sequence: Sequence[Note]) -> Artifact:
        """
        Encodes a single sequence.
        Raises EncodingError if the sequence cannot be encoded.
        """
        pass


class ArtifactStore(ABC):
    """A port for persisting a single artifact at an explicit path."""

    @abstractmethod
    def save(self, artifact: Artifact, destination: Path) -> Path:
        """Writes the artifact to destination and returns the final path."""
        pass


class ArchiveWriter(ABC):
    """
    A port for a stateful writer that groups artifacts into batches.

    Writers start OPEN. ``finish`` flushes what is left, moves the writer to
    CLOSED and returns the summary of everything written.
    """

    @property
    @abstractmethod
    def state(self) -> ArchiveState:
        pass

    @abstractmethod
    def push(self, artifact: Artifact) -> Path:
        """
        Queues an artifact and returns its content-addressed path.
        Raises InvalidStateError if the writer is closed.
        """
        pass

    @abstractmethod
    def finish(self) -> ArchiveSummary:
        """
        Flushes the pending batch and closes the writer.
        Raises InvalidStateError if the writer is already closed.
        """
        pass

    @abstractmethod
    def abort(self):
        """
        Releases open resources after a failed run without persisting the
        pending batch. The state is left unchanged.
        """
        pass


class ProgressObserver(ABC):
    """A port for reporting how many artifacts have been generated."""

    @abstractmethod
    def on_progress(self, count: int):
        pass

    @abstractmethod
    def close(self):
        pass
