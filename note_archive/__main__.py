"""
Entry point for the note_archive component.
"""

import argparse
import logging
import sys

from .application.exceptions import NoteArchiveError
from .infrastructure.cli_models import (
    BatchArguments,
    PartitionArguments,
    SingleArguments,
    validate_arguments,
)
from .infrastructure.containers import Container

logger = logging.getLogger(__name__)


def setup_logging(level: str):
    """Applies basic logging configuration."""
    logging.basicConfig(level=level)


def run_single(container: Container, args: argparse.Namespace):
    arguments = validate_arguments(SingleArguments, vars(args))
    service = container.generation_service()
    service.write_single(arguments.sequence(), arguments.target)


def run_batch(container: Container, args: argparse.Namespace):
    generator_settings = container.config().generator
    values = {
        "max_files": generator_settings.max_files,
        "update": generator_settings.progress_update_ms,
        "enforce_min_length": generator_settings.enforce_min_length,
    }
    values.update({k: v for k, v in vars(args).items() if v is not None})
    job = validate_arguments(BatchArguments, values).to_domain()
    service = container.generation_service()
    service.run_batch(job)


def run_partition(container: Container, args: argparse.Namespace):
    values = {"max_files": container.config().generator.max_files}
    values.update({k: v for k, v in vars(args).items() if v is not None})
    arguments = validate_arguments(PartitionArguments, values)
    service = container.generation_service()
    path = service.locate(
        arguments.sequence(),
        arguments.partition_depth,
        arguments.max_files,
        arguments.root,
    )
    print(path)


DIRECTIVES = {
    "single": run_single,
    "batch": run_batch,
    "partition": run_partition,
}


def run_application(args: argparse.Namespace):
    """Wires and runs the requested directive using the DI container."""

    container = Container()
    container.cli_args.from_dict(vars(args))
    setup_logging(level=container.config().logging.level)

    try:
        DIRECTIVES[args.directive](container, args)
    except NoteArchiveError as e:
        logger.error(f"An application error occurred: {e}")
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="note_archive",
        description="Enumerate note sequences into a content-addressed MIDI archive",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Disable the progress bar.",
    )
    directives = parser.add_subparsers(dest="directive", required=True)

    single = directives.add_parser(
        "single", help="Write one MIDI file for an explicit note sequence."
    )
    single.add_argument("notes", help="Comma-separated notes, e.g. C:4,D:4,E:4")
    single.add_argument("target", help="Path of the MIDI file to write.")

    batch = directives.add_parser(
        "batch", help="Write every sequence of LENGTH drawn from NOTES."
    )
    batch.add_argument("notes", help="Comma-separated notes forming the alphabet.")
    batch.add_argument("length", type=int, help="Number of notes per sequence.")
    batch.add_argument("target", help="Root directory of the output tree.")
    batch.add_argument(
        "-p", "--partition-depth", dest="partition_depth", type=int, required=True,
        help="Number of hash-prefix directory levels (0 = flat).",
    )
    batch.add_argument(
        "-b", "--batch-size", dest="batch_size", type=int, required=True,
        help="Maximum artifacts per batch.",
    )
    batch.add_argument(
        "-m", "--max-files", dest="max_files", type=float,
        help="Planning budget for artifacts per leaf directory.",
    )
    batch.add_argument(
        "-c", "--count", type=int,
        help="Stop after this many artifacts (default: the whole space).",
    )
    batch.add_argument(
        "-s", "--start", type=int,
        help="Index of the first sequence to generate (default: 0).",
    )
    batch.add_argument(
        "-u", "--update", type=int,
        help="Progress bar refresh interval in milliseconds.",
    )
    batch.add_argument(
        "--layout",
        choices=["archive", "directory"],
        default="archive",
        help="Pack batches into .tar.zst containers or write loose files.",
    )

    partition = directives.add_parser(
        "partition", help="Print the archive path of an explicit note sequence."
    )
    partition.add_argument("notes", help="Comma-separated notes, e.g. C:4,D:4,E:4")
    partition.add_argument(
        "-p", "--partition-depth", dest="partition_depth", type=int, required=True,
        help="Number of hash-prefix directory levels (0 = flat).",
    )
    partition.add_argument(
        "-m", "--max-files", dest="max_files", type=float,
        help="Planning budget for artifacts per leaf directory.",
    )
    partition.add_argument(
        "--root", default=".", help="Directory the path is relative to."
    )

    return parser


def main(argv=None):
    cli_args = build_parser().parse_args(argv)
    run_application(cli_args)


if __name__ == "__main__":
    main()
