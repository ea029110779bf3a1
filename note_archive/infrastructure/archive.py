"""
Filesystem implementations of the ArchiveWriter and ArtifactStore ports.

Two layouts are supported. TarZstdBatchWriter packs every batch into one
Zstandard-compressed tar container whose members are named by their
partitioned paths. DirectoryBatchWriter writes one file per artifact directly
at its partitioned path and uses batches only as the flush unit.
"""

import contextlib
import dataclasses
import io
import logging
import tarfile
from pathlib import Path
from typing import Generator, Iterator, List, Optional, Tuple

import pyarrow
import zstandard

from ..application.domain import *
from ..application.exceptions import (
    ArchiveIOError,
    InvalidConfigurationError,
    InvalidStateError,
)
from ..application.partitioning import assign_path

from .index import ParquetIndexWriter
from .manifest_models import MANIFEST_NAME, BatchManifest, ManifestEntry

_FLUSH_ERRORS = (
    OSError,
    tarfile.TarError,
    zstandard.ZstdError,
    pyarrow.ArrowException,
)


@contextlib.contextmanager
def _atomic_target(destination: Path) -> Generator[Path, None, None]:
    """Provides a temporary '.part' path and ensures cleanup."""
    part_path = destination.with_suffix(destination.suffix + ".part")
    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        yield part_path
    finally:
        part_path.unlink(missing_ok=True)


def _write_atomically(data: bytes, destination: Path):
    with _atomic_target(destination) as part_path:
        part_path.write_bytes(data)
        part_path.replace(destination)


class LooseFileStore(ArtifactStore):
    """An adapter that writes single artifacts to explicit paths atomically."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def save(self, artifact: Artifact, destination: Path) -> Path:
        """
        Writes the artifact bytes to destination via a '.part' file.

        Raises:
            ArchiveIOError: If the file or its parent directory cannot be
                            written.
        """
        self.logger.info(f"Attempting to write {artifact.content_hash} to {destination}")
        try:
            _write_atomically(artifact.data, destination)
        except OSError as e:
            raise ArchiveIOError(f"Failed to write {destination}: {e}") from e
        return destination


@dataclasses.dataclass(frozen=True)
class BatchEntry:
    """An artifact queued in the open batch, with its assigned path."""

    artifact: Artifact
    path: Path


class BatchWriter(ArchiveWriter):
    """
    Shared batching state machine for the filesystem writers.

    Subclasses implement ``_write_batch``, which persists one full (or final
    short) batch and returns where it was written.
    """

    def __init__(
        self,
        target: Path,
        geometry: PartitionGeometry,
        batch_size: int,
        index_name: Optional[str] = "index.parquet",
    ):
        """
        Initializes an open writer. No I/O happens until the first flush.

        Args:
            target: Root directory of the output tree.
            geometry: Partition geometry applied to every content hash.
            batch_size: Maximum artifacts per batch, at least 1.
            index_name: File name of the Parquet run index under target,
                        or an empty value to skip the index.

        Raises:
            InvalidConfigurationError: If batch_size is below 1.
        """

        if batch_size < 1:
            raise InvalidConfigurationError(
                f"Batch size must be at least 1, got {batch_size}"
            )

        self.logger = logging.getLogger(self.__class__.__name__)
        self.target = Path(target)
        self.geometry = geometry
        self.batch_size = batch_size
        self._index = (
            ParquetIndexWriter(self.target / index_name) if index_name else None
        )
        self._state = ArchiveState.OPEN
        self._batch: List[BatchEntry] = []
        self._batches: List[BatchRecord] = []

    @property
    def state(self) -> ArchiveState:
        return self._state

    @property
    def pending(self) -> int:
        """Number of artifacts queued in the open batch."""
        return len(self._batch)

    @property
    def batches(self) -> Tuple[BatchRecord, ...]:
        return tuple(self._batches)

    def _ensure_open(self, operation: str):
        if self._state is ArchiveState.CLOSED:
            raise InvalidStateError(
                f"Cannot {operation}: archive at {self.target} is closed"
            )

    def _relative_name(self, path: Path) -> str:
        return path.relative_to(self.target).as_posix()

    def _write_batch(self, number: int, entries: List[BatchEntry]) -> Path:
        raise NotImplementedError

    def _index_rows(self, entries: List[BatchEntry]) -> List[dict]:
        return [
            {
                "sequence_index": (
                    None if entry.artifact.sequence_index is None
                    else str(entry.artifact.sequence_index)
                ),
                "notes": entry.artifact.label,
                "content_hash": entry.artifact.content_hash,
                "path": self._relative_name(entry.path),
            }
            for entry in entries
        ]

    def _flush(self):
        """Persists the open batch. On failure the batch stays queued."""
        number = len(self._batches) + 1
        entries = list(self._batch)

        try:
            self.target.mkdir(parents=True, exist_ok=True)
            location = self._write_batch(number, entries)
            if self._index is not None:
                container = (
                    "." if location == self.target
                    else self._relative_name(location)
                )
                self._index.append(number, container, self._index_rows(entries))
        except _FLUSH_ERRORS as e:
            raise ArchiveIOError(
                f"Failed to flush batch {number} ({len(entries)} artifacts) "
                f"to {self.target}: {e}"
            ) from e

        self._batches.append(
            BatchRecord(number=number, location=location, item_count=len(entries))
        )
        self._batch = []
        self.logger.debug(f"Flushed batch {number} with {len(entries)} artifacts")

    def push(self, artifact: Artifact) -> Path:
        """
        Assigns the artifact its partitioned path and queues it.

        The artifact is only guaranteed to be on disk once the batch holding
        it has been flushed, which happens as soon as the batch is full.

        Args:
            artifact: A fully encoded artifact with a hexadecimal hash.

        Returns:
            The content-addressed path assigned to the artifact.

        Raises:
            InvalidStateError: If the writer is closed.
            InvalidConfigurationError: If the hash does not fit the geometry.
            ArchiveIOError: If flushing the full batch fails.
        """

        self._ensure_open("push")
        path = assign_path(
            artifact.content_hash, self.geometry, self.target, artifact.extension
        )
        self._batch.append(BatchEntry(artifact=artifact, path=path))
        if len(self._batch) >= self.batch_size:
            self._flush()
        return path

    def finish(self) -> ArchiveSummary:
        """
        Flushes any pending (possibly short) batch and closes the writer.

        Raises:
            InvalidStateError: If the writer is already closed.
            ArchiveIOError: If the final flush or the index fails.
        """

        self._ensure_open("finish")
        if self._batch:
            self._flush()
        if self._index is not None:
            try:
                self._index.close()
            except _FLUSH_ERRORS as e:
                raise ArchiveIOError(
                    f"Failed to finalize index {self._index.destination}: {e}"
                ) from e

        self._state = ArchiveState.CLOSED
        summary = ArchiveSummary(target=self.target, batches=tuple(self._batches))
        self.logger.info(
            f"Closed archive at {self.target}: {summary.artifact_count} "
            f"artifacts in {len(summary.batches)} batches"
        )
        return summary

    def abort(self):
        """
        Drops the partial run index. Flushed batches stay on disk, the
        pending batch stays queued and the state is not changed.
        """
        if self._index is not None:
            self._index.abort()
            self.logger.debug(f"Discarded partial index {self._index.part_path}")


class TarZstdBatchWriter(BatchWriter):
    """Writes each batch as ``<target>/<prefix>-NNNNNN.tar.zst``."""

    def __init__(
        self,
        target: Path,
        geometry: PartitionGeometry,
        batch_size: int,
        index_name: Optional[str] = "index.parquet",
        compression_level: int = 3,
        container_prefix: str = "batch",
    ):
        """Initializes the writer; see BatchWriter for the shared arguments."""
        super().__init__(target, geometry, batch_size, index_name)
        self.compression_level = compression_level
        self.container_prefix = container_prefix

    def container_path(self, number: int) -> Path:
        return self.target / f"{self.container_prefix}-{number:06d}.tar.zst"

    def _build_manifest(self, number: int, entries: List[BatchEntry]) -> BatchManifest:
        return BatchManifest(
            batch=number,
            entries=[
                ManifestEntry(
                    content_hash=entry.artifact.content_hash,
                    path=self._relative_name(entry.path),
                    notes=entry.artifact.label,
                    sequence_index=entry.artifact.sequence_index,
                )
                for entry in entries
            ],
        )

    def _add_member(self, tar: tarfile.TarFile, name: str, data: bytes):
        info = tarfile.TarInfo(name=name)
        info.size = len(data)
        info.mode = 0o644
        info.mtime = 0
        tar.addfile(info, io.BytesIO(data))

    def _write_container(self, part_path: Path, number: int, entries: List[BatchEntry]):
        """Streams the manifest and every artifact through tar into zstd."""
        manifest = self._build_manifest(number, entries)
        compressor = zstandard.ZstdCompressor(level=self.compression_level)
        with open(part_path, "wb") as out_fh:
            with compressor.stream_writer(out_fh, closefd=False) as compressed:
                with tarfile.open(fileobj=compressed, mode="w|") as tar:
                    self._add_member(
                        tar, MANIFEST_NAME, manifest.model_dump_json().encode("utf-8")
                    )
                    for entry in entries:
                        self._add_member(
                            tar, self._relative_name(entry.path), entry.artifact.data
                        )

    def _write_batch(self, number: int, entries: List[BatchEntry]) -> Path:
        container = self.container_path(number)
        with _atomic_target(container) as part_path:
            self._write_container(part_path, number, entries)
            part_path.replace(container)
        self.logger.info(f"Wrote {container.name} with {len(entries)} artifacts")
        return container


class DirectoryBatchWriter(BatchWriter):
    """
    Writes every artifact to its own file at the partitioned path.

    Content-addressed files that already exist are left untouched, since an
    identical hash means identical bytes.
    """

    def _write_batch(self, number: int, entries: List[BatchEntry]) -> Path:
        written = 0
        for entry in entries:
            if entry.path.exists():
                self.logger.debug(f"{entry.path.name} already exists. Skipping.")
                continue
            _write_atomically(entry.artifact.data, entry.path)
            written += 1
        self.logger.info(
            f"Batch {number}: wrote {written} of {len(entries)} artifacts "
            f"under {self.target}"
        )
        return self.target


def iter_container(container: Path) -> Iterator[Tuple[str, bytes]]:
    """
    Yields ``(member_name, data)`` for every file in a batch container,
    starting with the manifest.

    Raises:
        ArchiveIOError: If the container cannot be read or decompressed.
    """
    decompressor = zstandard.ZstdDecompressor()
    try:
        with open(container, "rb") as in_fh:
            with decompressor.stream_reader(in_fh) as reader:
                with tarfile.open(fileobj=reader, mode="r|") as tar:
                    for member in tar:
                        if not member.isfile():
                            continue
                        yield member.name, tar.extractfile(member).read()
    except (OSError, tarfile.TarError, zstandard.ZstdError) as e:
        raise ArchiveIOError(f"Failed to read container {container}: {e}") from e


def read_manifest(container: Path) -> BatchManifest:
    """Returns the manifest stored at the head of a batch container."""
    for name, data in iter_container(container):
        if name == MANIFEST_NAME:
            return BatchManifest.model_validate_json(data)
    raise ArchiveIOError(f"Container {container} has no {MANIFEST_NAME}")
