"""
CSV record source.

Reads delimited files lazily in chunks with pandas. Every cell is read as
text and blank cells come back as "" so the match key and payload code see
exactly what was in the file.
"""

from pathlib import Path
from typing import Iterator

import pandas as pd

from leadsync.core.errors import SourceReadError
from leadsync.core.models import RawRecord
from leadsync.observability.logger import get_logger

logger = get_logger(__name__)


class CsvRecordSource:
    """
    Yields RawRecords from the CSV files of an input directory.
    """

    def __init__(
        self,
        delimiter: str = ",",
        chunk_size: int = 500,
        encoding: str = "utf-8",
        extension: str = ".csv",
    ):
        """
        Initialize the CSV source.

        Args:
            delimiter: Field delimiter
            chunk_size: Rows read from disk at a time
            encoding: File encoding
            extension: File extension of input files
        """
        self.delimiter = delimiter
        self.chunk_size = chunk_size
        self.encoding = encoding
        self.extension = extension.lower()

    def list_files(self, directory: str | Path) -> list[Path]:
        """
        List the input files of a directory, sorted by name.

        Entries that are not regular files with the expected extension are
        skipped and logged.

        Raises:
            SourceReadError: If the directory cannot be enumerated
        """
        directory = Path(directory)
        try:
            entries = sorted(directory.iterdir())
        except OSError as e:
            raise SourceReadError(str(directory), f"cannot list directory: {e}") from e

        files = []
        for entry in entries:
            if entry.is_file() and entry.suffix.lower() == self.extension:
                files.append(entry)
            else:
                logger.info(f"Skipping non-file or non-CSV item: {entry.name}")
        return files

    def iter_rows(self, path: str | Path) -> Iterator[tuple[int, RawRecord]]:
        """
        Iterate the rows of one file.

        Blank lines (and rows whose cells are all blank) are skipped but
        still counted, so row_number stays the line number in the file.

        Yields:
            Tuples of (row_number, row); the header is row 1

        Raises:
            SourceReadError: If the file cannot be opened or parsed. Rows
                yielded before the error stay valid.
        """
        path = Path(path)
        row_number = 1
        try:
            reader = pd.read_csv(
                path,
                sep=self.delimiter,
                dtype=str,
                keep_default_na=False,
                na_filter=False,
                skipinitialspace=False,
                skip_blank_lines=False,
                encoding=self.encoding,
                chunksize=self.chunk_size,
            )
            with reader:
                for chunk in reader:
                    chunk.columns = [str(c).strip() for c in chunk.columns]
                    for row in chunk.to_dict(orient="records"):
                        row_number += 1
                        record = {k: ("" if pd.isna(v) else str(v)) for k, v in row.items()}
                        if any(value.strip() for value in record.values()):
                            yield row_number, record
        except pd.errors.EmptyDataError:
            logger.warning(f"Input file is empty: {path}")
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise SourceReadError(str(path), str(e)) from e
