"""
Dependency Injection container for the note_archive component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as services and infrastructure adapters,
based on the application's configuration.
"""

from dependency_injector import containers, providers

from ..application.domain import *
from ..application.service import GenerationService
from ..settings import load_settings

from .archive import DirectoryBatchWriter, LooseFileStore, TarZstdBatchWriter
from .encoder import MidoEncoder
from .progress import TqdmProgress


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    cli_args = providers.Configuration()

    config = providers.Singleton(load_settings)

    encoder: providers.Factory[SequenceEncoder] = providers.Factory(
        MidoEncoder,
        ticks_per_beat=config().encoder.ticks_per_beat,
        velocity=config().encoder.velocity,
        note_ticks=config().encoder.note_ticks,
        extension=config().encoder.extension,
    )

    artifact_store: providers.Factory[ArtifactStore] = providers.Factory(
        LooseFileStore,
    )

    archive_writer = providers.Selector(
        cli_args.layout,
        archive=providers.Factory(
            TarZstdBatchWriter,
            index_name=config().archive.index_name,
            compression_level=config().archive.compression_level,
            container_prefix=config().archive.container_prefix,
        ),
        directory=providers.Factory(
            DirectoryBatchWriter,
            index_name=config().archive.index_name,
        ),
    )

    progress: providers.Factory[ProgressObserver] = providers.Factory(
        TqdmProgress,
        disable=cli_args.quiet,
    )

    generation_service = providers.Factory(
        GenerationService,
        encoder=encoder,
        artifact_store=artifact_store,
        writer_factory=archive_writer.provider,
        progress_factory=progress.provider,
    )
