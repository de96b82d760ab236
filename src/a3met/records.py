"""
A3 archive record parsing.

This module provides the timestamp key used to address archive contents,
the parser for the Fortran unformatted sequential records the archives are
written with, and the `ArchiveReader` that owns the single open archive.

Each record on disk is framed by a pair of equal 4-byte length markers::

    [int32 n][n bytes][int32 n]

An archive starts with one header record holding an 8-character ident
string, followed by pairs of records for every field: a name record and a
payload record of ``int32 date, int32 time, float32[...]``.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, ClassVar, Iterator

import numpy as np
import pandas as pd

from a3met.errors import ArchiveIOError, ArchiveNotFoundError

_log = logging.getLogger(__name__)

N_BYTES_MARKER = 4


@dataclass(frozen=True)
class TimeKey:
    """
    A (date, time) pair identifying a requested or record timestamp.

    Parameters
    ----------
    date : int
        Date as a YYYYMMDD integer.
    time : int
        Time of day as an HHMMSS integer.
    """

    date: int
    time: int

    @classmethod
    def from_timestamp(cls, ts: pd.Timestamp | str) -> "TimeKey":
        """
        Build a key from anything `pd.Timestamp` understands.
        """
        ts = pd.Timestamp(ts)
        return cls(date=int(ts.strftime("%Y%m%d")), time=int(ts.strftime("%H%M%S")))

    @property
    def is_valid(self) -> bool:
        return self.date >= 0 and self.time >= 0

    @property
    def timestamp(self) -> pd.Timestamp:
        """
        Get the timestamp for this key.

        Returns
        -------
        pd.Timestamp
            Timestamp constructed from the date and time integers.
        """
        return pd.to_datetime(f"{self.date:08d}{self.time:06d}", format="%Y%m%d%H%M%S")

    def __str__(self) -> str:
        if not self.is_valid:
            return f"{self.date} {self.time}"
        return self.timestamp.strftime("%Y/%m/%d %H:%M")


# Nothing has been seen or processed yet
INVALID_KEY = TimeKey(date=-1, time=-1)


def _read_bytes(stream: BinaryIO, n: int) -> bytes:
    try:
        return stream.read(n)
    except OSError as err:
        raise ArchiveIOError(f"Read failed: {err}") from err


def read_fortran_record(stream: BinaryIO, byteorder: str = ">") -> bytes | None:
    """
    Read one Fortran unformatted sequential record.

    Parameters
    ----------
    stream : BinaryIO
        Binary stream positioned at a record boundary.
    byteorder : str
        numpy byte order character of the length markers.

    Returns
    -------
    bytes or None
        The record contents, or None if the stream is exhausted.

    Raises
    ------
    ArchiveIOError
        If the record is truncated or its two length markers disagree.
    """
    head = _read_bytes(stream, N_BYTES_MARKER)
    if not head:
        return None
    if len(head) < N_BYTES_MARKER:
        raise ArchiveIOError("Truncated record length marker")

    length = int(np.frombuffer(head, dtype=f"{byteorder}i4")[0])
    if length < 0:
        raise ArchiveIOError(f"Invalid record length {length}")

    data = _read_bytes(stream, length)
    if len(data) < length:
        raise ArchiveIOError(f"Truncated record: expected {length} bytes, got {len(data)}")

    tail = _read_bytes(stream, N_BYTES_MARKER)
    if tail != head:
        raise ArchiveIOError("Record length markers do not match")

    return data


@dataclass
class Ident:
    "Header record: the last 2 characters of the ident give the field count"

    text: str
    n_fields: int

    N_BYTES: ClassVar[int] = 8

    @classmethod
    def from_bytes(cls, data: bytes) -> "Ident":
        """
        Parse the ident string from a raw header record.
        """
        if len(data) < cls.N_BYTES:
            raise ArchiveIOError(
                f"{cls.__name__} must be at least {cls.N_BYTES} bytes, got {len(data)}"
            )

        text = data[: cls.N_BYTES].decode("ascii", errors="replace")
        # Count must be zero padded; a blank-padded " 9" is rejected
        digits = text[-2:]
        if not (digits.isascii() and digits.isdigit()):
            raise ArchiveIOError(f"Malformed archive ident {text!r}")

        return cls(text=text, n_fields=int(digits))


@dataclass
class FieldRecord:
    """
    A field name paired with its undecoded payload record.

    Parameters
    ----------
    name : str
        Field name, with blank and NUL padding removed.
    payload : bytes
        Raw payload: the timestamp pair followed by float32 values.
    byteorder : str
        numpy byte order character of the payload.
    """

    name: str
    payload: bytes = field(repr=False)
    byteorder: str = ">"

    N_BYTES_TIME: ClassVar[int] = 8

    @property
    def time_key(self) -> TimeKey:
        """
        Get the timestamp embedded at the start of the payload.

        Returns
        -------
        TimeKey
            The record's date and time.
        """
        if len(self.payload) < self.N_BYTES_TIME:
            raise ArchiveIOError(f"{self.name} payload is too short for a timestamp")
        date, time = np.frombuffer(self.payload, dtype=f"{self.byteorder}i4", count=2)
        return TimeKey(date=int(date), time=int(time))

    def values(self, shape: tuple[int, ...]) -> np.ndarray:
        """
        Decode the payload array.

        Parameters
        ----------
        shape : tuple[int, ...]
            Raw shape of the field, in Fortran (column-major) order.

        Returns
        -------
        np.ndarray
            float32 array of the given shape.

        Raises
        ------
        ArchiveIOError
            If the payload size does not match `shape`.
        """
        count = int(np.prod(shape))
        n_bytes = len(self.payload) - self.N_BYTES_TIME
        if n_bytes != count * 4:
            raise ArchiveIOError(
                f"{self.name} payload holds {n_bytes} bytes, "
                f"expected {count * 4} for shape {shape}"
            )

        data = np.frombuffer(
            self.payload, dtype=f"{self.byteorder}f4", count=count, offset=self.N_BYTES_TIME
        )
        return data.reshape(shape, order="F")


def decode_name(data: bytes) -> str:
    return data.decode("ascii", errors="replace").strip(" \x00")


class ArchiveReader:
    """
    Sequential reader over one A3 archive at a time.

    Opening a new archive closes the previous one, so at most one stream is
    ever live. Not thread-safe: a single caller drives it.

    Parameters
    ----------
    byteorder : str
        numpy byte order character used by the archives, big-endian by default.
    """

    def __init__(self, byteorder: str = ">"):
        self.byteorder = byteorder
        self.path: Path | None = None
        self.ident: Ident | None = None
        self._stream: BinaryIO | None = None

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __iter__(self) -> Iterator[FieldRecord]:
        while True:
            record = self.read_record()
            if record is None:
                return
            yield record

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def expected_field_count(self) -> int:
        """
        Number of fields declared by the open archive's header.
        """
        if self.ident is None:
            raise ArchiveIOError("No A3 archive is open")
        return self.ident.n_fields

    def open(self, path: Path | str) -> "ArchiveReader":
        """
        Open an archive and read its header record.

        Parameters
        ----------
        path : Path or str
            Path to the archive file.

        Returns
        -------
        ArchiveReader
            This reader, positioned at the first field record.

        Raises
        ------
        ArchiveNotFoundError
            If `path` is not an existing, readable file.
        ArchiveIOError
            If the file cannot be opened or its header is malformed.
        """
        path = Path(path)

        # Close previously opened archive
        self.close()

        if not path.is_file() or not os.access(path, os.R_OK):
            raise ArchiveNotFoundError(f"Could not find file: {path}")

        try:
            stream = path.open("rb")
        except OSError as err:
            raise ArchiveIOError(f"Could not open {path}: {err}") from err

        _log.info("Opening: %s", path)

        try:
            header = read_fortran_record(stream, self.byteorder)
            if header is None:
                raise ArchiveIOError(f"{path} has no header record")
            ident = Ident.from_bytes(header)
        except ArchiveIOError:
            stream.close()
            raise

        self.path = path
        self.ident = ident
        self._stream = stream
        return self

    def read_record(self) -> FieldRecord | None:
        """
        Read the next field name and its payload.

        Returns
        -------
        FieldRecord or None
            The next record, or None at end of stream.

        Raises
        ------
        ArchiveIOError
            On any read failure, or if no archive is open.
        """
        if self._stream is None:
            raise ArchiveIOError("No A3 archive is open")

        name = read_fortran_record(self._stream, self.byteorder)
        if name is None:
            return None

        payload = read_fortran_record(self._stream, self.byteorder)
        if payload is None:
            raise ArchiveIOError(f"{self.path}: field {decode_name(name)!r} has no data record")

        return FieldRecord(name=decode_name(name), payload=payload, byteorder=self.byteorder)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
        self._stream = None
        self.ident = None
        self.path = None
