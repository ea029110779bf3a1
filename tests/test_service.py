"""Tests for GenerationService, end to end against real writers."""

import io

import mido
import pyarrow.parquet as parquet
import pytest

from conftest import RecordingProgress
from note_archive.application.domain import ArchiveState, BatchJob, PartitionGeometry
from note_archive.application.exceptions import (
    EncodingError,
    InvalidConfigurationError,
)
from note_archive.application.notes import Alphabet, parse_notes
from note_archive.application.partitioning import assign_path
from note_archive.application.service import GenerationService
from note_archive.infrastructure.archive import (
    LooseFileStore,
    TarZstdBatchWriter,
    iter_container,
    read_manifest,
)
from note_archive.infrastructure.encoder import MidoEncoder


def make_job(target, alphabet, **overrides):
    values = dict(
        alphabet=alphabet,
        length=2,
        target=target,
        partition_depth=1,
        batch_size=2,
        max_files=4,
        count=4,
    )
    values.update(overrides)
    return BatchJob(**values)


class FailingEncoder(MidoEncoder):
    """Rejects any sequence that contains the given MIDI number."""

    def __init__(self, poison: int):
        super().__init__()
        self.poison = poison

    def encode(self, sequence):
        if any(note.midi_number == self.poison for note in sequence):
            raise EncodingError("poisoned note")
        return super().encode(sequence)


class RecordingWriter(TarZstdBatchWriter):
    """Keeps a handle on every writer the service opens."""

    opened = []

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        RecordingWriter.opened.append(self)


class TestRunBatch:
    """Tests for GenerationService.run_batch."""

    def test_end_to_end_scenario(self, archive_service, target, two_notes, progress_log):
        summary = archive_service.run_batch(make_job(target, two_notes))

        assert summary.artifact_count == 4
        assert [b.item_count for b in summary.batches] == [2, 2]

        entries = [
            entry
            for batch in summary.batches
            for entry in read_manifest(batch.location).entries
        ]
        assert [entry.notes for entry in entries] == [
            "A:4,A:4", "A:4,B:4", "B:4,A:4", "B:4,B:4",
        ]
        assert [entry.sequence_index for entry in entries] == [0, 1, 2, 3]
        for entry in entries:
            directory, file_name = entry.path.split("/")
            assert directory == entry.content_hash[0]
            assert file_name == f"{entry.content_hash}.mid"

        assert progress_log[0].counts == [1, 2, 3, 4]
        assert progress_log[0].total == 4
        assert progress_log[0].closed

    def test_container_members_are_playable(self, archive_service, target, two_notes):
        summary = archive_service.run_batch(make_job(target, two_notes, count=1))

        members = dict(iter_container(summary.batches[0].location))
        manifest = read_manifest(summary.batches[0].location)
        data = members[manifest.entries[0].path]
        midi_file = mido.MidiFile(file=io.BytesIO(data))
        notes = [m.note for m in midi_file.tracks[0] if m.type == "note_on"]
        assert notes == [69, 69]

    def test_directory_layout(self, directory_service, target, two_notes):
        directory_service.run_batch(make_job(target, two_notes, partition_depth=2))

        files = sorted(target.rglob("*.mid"))
        assert len(files) == 4
        for path in files:
            content_hash = path.stem
            geometry = PartitionGeometry(partition_size=1, partition_depth=2)
            assert path == assign_path(content_hash, geometry, target, "mid")

    def test_count_defaults_to_full_space(self, archive_service, target, two_notes):
        summary = archive_service.run_batch(
            make_job(target, two_notes, length=3, count=None, batch_size=3)
        )
        assert summary.artifact_count == 8
        assert [b.item_count for b in summary.batches] == [3, 3, 2]

    def test_restart_from_index(self, archive_service, target, two_notes):
        archive_service.run_batch(
            make_job(target, two_notes, length=3, count=None, start=5)
        )
        table = parquet.read_table(target / "index.parquet").to_pydict()
        assert table["sequence_index"] == ["5", "6", "7"]
        assert table["notes"][0] == "B:4,A:4,B:4"

    def test_count_larger_than_space(self, archive_service, target, two_notes, progress_log):
        summary = archive_service.run_batch(make_job(target, two_notes, count=50))
        assert summary.artifact_count == 4
        assert progress_log[0].total == 4

    def test_zero_count_rejected_before_io(self, archive_service, target, two_notes):
        with pytest.raises(InvalidConfigurationError):
            archive_service.run_batch(make_job(target, two_notes, count=0))
        assert not target.exists()

    def test_length_below_minimum_rejected(self, archive_service, target):
        alphabet = Alphabet.parse("C:4,D:4,E:4")
        with pytest.raises(InvalidConfigurationError):
            archive_service.run_batch(make_job(target, alphabet, min_length=3))
        assert not target.exists()

    def test_start_outside_space_rejected(self, archive_service, target, two_notes):
        with pytest.raises(InvalidConfigurationError):
            archive_service.run_batch(make_job(target, two_notes, start=4))

    def test_geometry_too_deep_for_hash(self, archive_service, target):
        alphabet = Alphabet.parse("C:4,D:4,E:4,F:4,G:4,A:4,B:4,C:5")
        # 8**8 sequences at 1e-40 per leaf need two characters on each of 32 levels.
        job = make_job(target, alphabet, length=8, max_files=1e-40, partition_depth=32)
        with pytest.raises(InvalidConfigurationError, match="Partition geometry"):
            archive_service.run_batch(job)
        assert not target.exists()

    def test_encoding_failure_names_index(self, target, two_notes, progress_log):
        RecordingWriter.opened = []
        service = GenerationService(
            encoder=FailingEncoder(poison=71),
            artifact_store=LooseFileStore(),
            writer_factory=RecordingWriter,
            progress_factory=RecordingProgress,
        )

        with pytest.raises(EncodingError, match="#1"):
            service.run_batch(make_job(target, two_notes, batch_size=4))

        writer = RecordingWriter.opened[0]
        assert writer.state is ArchiveState.OPEN
        assert writer.pending == 1
        assert progress_log[0].closed
        assert not target.exists()

    def test_huge_depth_rejected_before_planning(self, archive_service, target, two_notes):
        with pytest.raises(InvalidConfigurationError, match="Partition depth"):
            archive_service.run_batch(make_job(target, two_notes, partition_depth=10**9))
        assert not target.exists()

    def test_failed_run_releases_index(self, target, two_notes, progress_log):
        RecordingWriter.opened = []
        service = GenerationService(
            encoder=FailingEncoder(poison=71),
            artifact_store=LooseFileStore(),
            writer_factory=RecordingWriter,
            progress_factory=RecordingProgress,
        )

        with pytest.raises(EncodingError, match="#1"):
            service.run_batch(make_job(target, two_notes, batch_size=1))

        writer = RecordingWriter.opened[0]
        assert writer.state is ArchiveState.OPEN
        assert [b.item_count for b in writer.batches] == [1]
        assert writer.container_path(1).exists()
        assert not (target / "index.parquet").exists()
        assert not list(target.rglob("*.part"))


class TestSingleAndLocate:
    """Tests for write_single and locate."""

    def test_write_single(self, archive_service, tmp_path):
        destination = tmp_path / "songs" / "scale.mid"
        path = archive_service.write_single(parse_notes("C:4,D:4,E:4"), destination)

        assert path == destination
        midi_file = mido.MidiFile(str(destination))
        notes = [m.note for m in midi_file.tracks[0] if m.type == "note_on"]
        assert notes == [60, 62, 64]

    def test_locate_matches_batch_path(self, archive_service, encoder, tmp_path):
        sequence = parse_notes("C:4,D:4")
        path = archive_service.locate(sequence, partition_depth=1, max_files=4, root=tmp_path)

        content_hash = encoder.encode(sequence).content_hash
        assert path == tmp_path / content_hash[0] / f"{content_hash}.mid"
        assert not path.exists()

    def test_locate_flat(self, archive_service, encoder):
        sequence = parse_notes("C:4,D:4,E:4")
        path = archive_service.locate(sequence, partition_depth=0, max_files=4096)
        assert path.name == f"{encoder.encode(sequence).content_hash}.mid"
        assert len(path.parts) == 1

    def test_write_single_failure_has_no_index(self, tmp_path):
        service = GenerationService(
            encoder=FailingEncoder(poison=60),
            artifact_store=LooseFileStore(),
            writer_factory=TarZstdBatchWriter,
            progress_factory=RecordingProgress,
        )
        destination = tmp_path / "one.mid"

        with pytest.raises(EncodingError, match="poisoned note") as excinfo:
            service.write_single(parse_notes("C:4,D:4"), destination)
        assert "#" not in str(excinfo.value)
        assert not destination.exists()

    def test_locate_huge_depth_rejected(self, archive_service):
        with pytest.raises(InvalidConfigurationError, match="Partition depth"):
            archive_service.locate(parse_notes("C:4,D:4"), partition_depth=10**9, max_files=4)
