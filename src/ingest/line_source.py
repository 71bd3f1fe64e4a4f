"""Line sources for station files and measurement archives.

Both sources are generators that own their file handle inside a ``with``
block: the handle is released when the generator is exhausted, closed,
or garbage collected. Callers that may stop early should wrap them in
``contextlib.closing``.
"""

from __future__ import annotations

import io
import zipfile
import zlib
from pathlib import Path
from typing import IO, Generator, Iterable

from core.constants import MEASUREMENT_HEADER_LINES, STATION_HEADER_LINES
from core.errors import DwdIngestError
from core.types import SourceLine

_READ_ERRORS = (OSError, EOFError, UnicodeDecodeError, zipfile.BadZipFile, zlib.error)


def station_lines(station_path: Path, encoding: str) -> Generator[SourceLine, None, None]:
    """Yield non-empty lines of a station description file.

    The first two lines (column names and a dashed separator) are skipped.

    Args:
        station_path: Path to the fixed-width station description file.
        encoding: Text encoding of the file.

    Yields:
        Non-empty lines with their one-based line numbers.

    Raises:
        DwdIngestError: If the file cannot be opened.
    """
    try:
        handle = station_path.open("r", encoding=encoding, newline="")
    except OSError as error:
        raise DwdIngestError(
            f"Failed to open station file {station_path}: {error}. "
            "Check that the data directory contains the station description file."
        ) from error
    with handle:
        yield from _guarded_lines(handle, STATION_HEADER_LINES, station_path)


def archive_lines(archive_path: Path, encoding: str) -> Generator[SourceLine, None, None]:
    """Yield non-empty lines of the single text entry inside an archive.

    The first line (column names) is skipped.

    Args:
        archive_path: Path to a zip archive holding one delimited-text entry.
        encoding: Text encoding of the entry.

    Yields:
        Non-empty lines with their one-based line numbers.

    Raises:
        DwdIngestError: If the archive is unreadable or holds no file entry.
    """
    try:
        archive = zipfile.ZipFile(archive_path)
    except (OSError, zipfile.BadZipFile) as error:
        raise DwdIngestError(
            f"Failed to open archive {archive_path}: {error}. "
            "Delete the file and fetch it again."
        ) from error
    with archive:
        entry = _single_entry(archive, archive_path)
        try:
            raw_stream = archive.open(entry)
        except _READ_ERRORS as error:
            raise DwdIngestError(
                f"Failed to open entry {entry.filename} in archive {archive_path}: {error}. "
                "Delete the file and fetch it again."
            ) from error
        with raw_stream:
            text_stream = io.TextIOWrapper(raw_stream, encoding=encoding, newline="")
            yield from _guarded_lines(text_stream, MEASUREMENT_HEADER_LINES, archive_path)


def _single_entry(archive: zipfile.ZipFile, archive_path: Path) -> zipfile.ZipInfo:
    file_entries = [entry for entry in archive.infolist() if not entry.is_dir()]
    if not file_entries:
        raise DwdIngestError(
            f"Archive {archive_path} contains no file entry. Expected one delimited-text file."
        )
    return file_entries[0]


def _guarded_lines(
    stream: IO[str], header_lines: int, source_path: Path
) -> Generator[SourceLine, None, None]:
    try:
        yield from _content_lines(stream, header_lines)
    except _READ_ERRORS as error:
        raise DwdIngestError(
            f"Failed to read {source_path}: {error}. "
            "The file may be truncated or use a different text encoding."
        ) from error


def _content_lines(
    stream: Iterable[str], header_lines: int
) -> Generator[SourceLine, None, None]:
    for line_number, line in enumerate(stream, 1):
        if line_number <= header_lines:
            continue
        text = line.rstrip("\r\n")
        if not text.strip():
            continue
        yield SourceLine(line_number=line_number, text=text)
