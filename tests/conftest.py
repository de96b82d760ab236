"""Shared fixtures: small grids and synthetic A3 archives."""

import numpy as np
import pytest

from a3met.catalog import FieldCatalog, FieldCatalogEntry
from a3met.records import TimeKey
from a3met.transfer import GridSpec


def fortran_record(data: bytes, byteorder: str = ">") -> bytes:
    """Frame bytes as one Fortran unformatted sequential record."""
    marker = np.array([len(data)], dtype=f"{byteorder}i4").tobytes()
    return marker + data + marker


def field_records(name: str, key: TimeKey, values, byteorder: str = ">") -> bytes:
    """Name record plus payload record for one field."""
    stamp = np.array([key.date, key.time], dtype=f"{byteorder}i4").tobytes()
    data = np.asarray(values, dtype=f"{byteorder}f4").tobytes(order="F")
    return fortran_record(name.ljust(8).encode("ascii"), byteorder) + fortran_record(
        stamp + data, byteorder
    )


def archive_bytes(n_fields: int, records, byteorder: str = ">", ident: str | None = None) -> bytes:
    """Header record followed by (name, key, values) field records."""
    if ident is None:
        ident = f"A3TEST{n_fields:02d}"
    out = fortran_record(ident.encode("ascii"), byteorder)
    for name, key, values in records:
        out += field_records(name, key, values, byteorder)
    return out


@pytest.fixture
def grid():
    """A 4 x 3 x 2 global grid read without a window."""
    return GridSpec(nx_global=4, ny_global=3, nz_global=2)


@pytest.fixture
def abc_catalog():
    """Three plain 3-D fields A, B and C."""
    return FieldCatalog(
        [
            FieldCatalogEntry(name="A", target="a"),
            FieldCatalogEntry(name="B", target="b"),
            FieldCatalogEntry(name="C", target="c"),
        ]
    )


@pytest.fixture
def write_archive(tmp_path):
    """Write a synthetic archive and return its path."""

    def _write(n_fields, records, name="archive.a3", **kwargs):
        path = tmp_path / name
        path.write_bytes(archive_bytes(n_fields, records, **kwargs))
        return path

    return _write


@pytest.fixture
def key():
    return TimeKey(date=20100801, time=0)
