"""
The core application service, containing pure orchestration logic.

GenerationService drives a run: it pulls sequences from the generator, hands
each one to the encoder, pushes the artifact into an archive writer and
reports progress. It also serves the single-file and path-lookup directives.
"""

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Callable, Sequence

from tqdm.contrib.logging import logging_redirect_tqdm

from .domain import *
from .exceptions import EncodingError, InvalidConfigurationError
from .notes import Note, format_sequence
from .partitioning import assign_path, ensure_hash_capacity, plan_partitions
from .sequences import SequenceGenerator

logger = logging.getLogger(__name__)

WriterFactory = Callable[..., ArchiveWriter]
ProgressFactory = Callable[..., ProgressObserver]


class GenerationService:
    """Orchestrates sequence generation, encoding and archiving."""

    def __init__(
        self,
        encoder: SequenceEncoder,
        artifact_store: ArtifactStore,
        writer_factory: WriterFactory,
        progress_factory: ProgressFactory,
    ):
        """
        Initializes the service with its ports.

        Args:
            encoder: Turns note sequences into artifacts.
            artifact_store: Writes standalone artifacts.
            writer_factory: Called with ``target``, ``geometry`` and
                            ``batch_size`` to open an archive writer.
            progress_factory: Called with ``total`` and ``update_interval``
                              to create a progress observer.
        """
        self.encoder = encoder
        self.artifact_store = artifact_store
        self.writer_factory = writer_factory
        self.progress_factory = progress_factory

    def _encode(self, index: int, sequence: Sequence[Note]) -> Artifact:
        """Encodes one sequence, attaching its index to the artifact and errors."""
        try:
            artifact = self.encoder.encode(sequence)
        except EncodingError as e:
            raise EncodingError(
                f"Failed to encode sequence #{index} "
                f"({format_sequence(sequence)}): {e}"
            ) from e
        return dataclasses.replace(artifact, sequence_index=index)

    def _plan(
        self,
        alphabet_size: int,
        length: int,
        max_files: float,
        partition_depth: int,
    ) -> PartitionGeometry:
        """Plans a geometry that the encoder's hashes are long enough for."""
        # Every level takes at least one hash character.
        if partition_depth >= self.encoder.hash_length:
            raise InvalidConfigurationError(
                f"Partition depth {partition_depth} needs hashes longer than "
                f"the {self.encoder.hash_length} characters the encoder produces"
            )
        geometry = plan_partitions(alphabet_size, length, max_files, partition_depth)
        ensure_hash_capacity(geometry, self.encoder.hash_length)
        return geometry

    def run_batch(self, job: BatchJob) -> ArchiveSummary:
        """
        Generates, encodes and archives every sequence the job asks for.

        All configuration checks happen before the writer is opened. If any
        step fails the error propagates and the writer is left open, so the
        batch in progress is not persisted. Its open resources are released
        through ``abort``.

        Args:
            job: The validated run parameters.

        Returns:
            The summary of batches written by the closed writer.

        Raises:
            InvalidConfigurationError: If the parameters are out of domain.
            EncodingError: If a sequence cannot be encoded.
            ArchiveIOError: If a batch cannot be written.
        """

        generator = SequenceGenerator(
            job.alphabet, job.length, min_length=job.min_length
        )
        if job.count is not None and job.count < 1:
            raise InvalidConfigurationError(
                f"Count must be greater than 0, got {job.count}"
            )
        if not 0 <= job.start < generator.space_size:
            raise InvalidConfigurationError(
                f"Start index {job.start} is outside "
                f"[0, {generator.space_size})"
            )

        geometry = self._plan(
            len(job.alphabet), job.length, job.max_files, job.partition_depth
        )

        remaining = generator.space_size - job.start
        total = remaining if job.count is None else min(job.count, remaining)

        logger.info(
            f"Generating {total} of {generator.space_size} sequences of "
            f"length {job.length} over {len(job.alphabet)} notes into "
            f"{job.target} (partition size {geometry.partition_size}, "
            f"depth {geometry.partition_depth}, batch size {job.batch_size})"
        )

        writer = self.writer_factory(
            target=Path(job.target),
            geometry=geometry,
            batch_size=job.batch_size,
        )
        progress = self.progress_factory(
            total=total if total <= sys.maxsize else None,
            update_interval=job.progress_interval,
        )

        try:
            with logging_redirect_tqdm():
                sequences = generator.iter_from(job.start, max_count=job.count)
                for done, (index, sequence) in enumerate(sequences, start=1):
                    writer.push(self._encode(index, sequence))
                    progress.on_progress(done)
            summary = writer.finish()
        except Exception:
            writer.abort()
            raise
        finally:
            progress.close()

        logger.info(
            f"Wrote {summary.artifact_count} artifacts in "
            f"{len(summary.batches)} batches to {summary.target}"
        )
        return summary

    def write_single(self, sequence: Sequence[Note], target: Path) -> Path:
        """Encodes one sequence and writes it to ``target``."""
        logger.info(f"Generating MIDI file from pitch sequence {format_sequence(sequence)}")
        artifact = self.encoder.encode(sequence)
        path = self.artifact_store.save(artifact, Path(target))
        logger.info(f"Successfully wrote MIDI file to {path}")
        return path

    def locate(
        self,
        sequence: Sequence[Note],
        partition_depth: int,
        max_files: float,
        root: Path = Path("."),
    ) -> Path:
        """
        Returns the content-addressed path a sequence would be stored at.

        The geometry is planned as if the sequence's own notes formed the
        alphabet and its length the target length. Nothing is written.
        """
        geometry = self._plan(
            len(sequence), len(sequence), max_files, partition_depth
        )
        artifact = self.encoder.encode(sequence)
        return assign_path(
            artifact.content_hash, geometry, Path(root), artifact.extension
        )
