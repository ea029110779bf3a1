"""
Parquet run index listing every artifact persisted by an archive writer.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional

import pandas
import pyarrow
import pyarrow.parquet as parquet

INDEX_SCHEMA = pyarrow.schema([
    ("batch", pyarrow.int64()),
    ("container", pyarrow.string()),
    # Stored as text: indices of large sequence spaces overflow int64.
    ("sequence_index", pyarrow.string()),
    ("notes", pyarrow.string()),
    ("content_hash", pyarrow.string()),
    ("path", pyarrow.string()),
])


class ParquetIndexWriter:
    """
    Appends one row group per flushed batch to a Parquet file.

    Rows go to a '.part' file that is renamed into place by ``close``, so a
    run that never finishes leaves no index behind.
    """

    def __init__(self, destination: Path):
        """Initializes the index writer; nothing is written until ``append``."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.destination = destination
        self.part_path = destination.with_suffix(destination.suffix + ".part")
        self._writer: Optional[parquet.ParquetWriter] = None
        self.rows_written = 0

    def append(self, batch: int, container: str, rows: Iterable[dict]):
        """Writes the rows of one batch as a row group."""
        frame = pandas.DataFrame(
            [{"batch": batch, "container": container, **row} for row in rows],
            columns=INDEX_SCHEMA.names,
        )
        table = pyarrow.Table.from_pandas(
            frame, schema=INDEX_SCHEMA, preserve_index=False
        )
        if self._writer is None:
            self.destination.parent.mkdir(parents=True, exist_ok=True)
            self._writer = parquet.ParquetWriter(str(self.part_path), INDEX_SCHEMA)
        self._writer.write_table(table)
        self.rows_written += table.num_rows

    def close(self):
        """Finalizes the Parquet file and moves it to its destination."""
        if self._writer is None:
            return
        self._writer.close()
        self._writer = None
        self.part_path.replace(self.destination)
        self.logger.info(
            f"Indexed {self.rows_written} artifacts in {self.destination.name}"
        )

    def abort(self):
        """Closes the open file, if any, and discards the partial index."""
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        self.part_path.unlink(missing_ok=True)
