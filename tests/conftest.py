"""Pytest fixtures for note_archive tests."""

from pathlib import Path
from typing import List, Optional

import pytest

from note_archive.application.domain import Artifact, PartitionGeometry, ProgressObserver
from note_archive.application.notes import Alphabet
from note_archive.application.service import GenerationService
from note_archive.infrastructure.archive import (
    DirectoryBatchWriter,
    LooseFileStore,
    TarZstdBatchWriter,
)
from note_archive.infrastructure.encoder import MidoEncoder


class RecordingProgress(ProgressObserver):
    """Progress observer that remembers every reported count."""

    instances: List["RecordingProgress"] = []

    def __init__(self, total: Optional[int], update_interval: float = 1.0):
        self.total = total
        self.update_interval = update_interval
        self.counts: List[int] = []
        self.closed = False
        RecordingProgress.instances.append(self)

    def on_progress(self, count: int):
        self.counts.append(count)

    def close(self):
        self.closed = True


def make_artifact(content_hash: str, index: Optional[int] = None) -> Artifact:
    """Builds a small artifact with a hand-picked hash."""
    return Artifact(
        data=content_hash.encode("ascii"),
        content_hash=content_hash,
        extension="mid",
        label=f"label-{content_hash[:4]}",
        sequence_index=index,
    )


@pytest.fixture
def two_notes():
    """A two-note alphabet (A, B)."""
    return Alphabet.parse("A:4,B:4")


@pytest.fixture
def encoder():
    return MidoEncoder()


@pytest.fixture
def geometry():
    """One level of one hash character."""
    return PartitionGeometry(partition_size=1, partition_depth=1)


@pytest.fixture
def progress_log():
    RecordingProgress.instances = []
    return RecordingProgress.instances


@pytest.fixture
def archive_service(encoder, progress_log):
    """Service writing .tar.zst containers."""
    return GenerationService(
        encoder=encoder,
        artifact_store=LooseFileStore(),
        writer_factory=TarZstdBatchWriter,
        progress_factory=RecordingProgress,
    )


@pytest.fixture
def directory_service(encoder, progress_log):
    """Service writing one file per artifact."""
    return GenerationService(
        encoder=encoder,
        artifact_store=LooseFileStore(),
        writer_factory=DirectoryBatchWriter,
        progress_factory=RecordingProgress,
    )


@pytest.fixture
def target(tmp_path) -> Path:
    return tmp_path / "out"
