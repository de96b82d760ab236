"""
A3 met field reader.

This module provides the `FieldDemultiplexer`, which scans an open A3 archive
for the records of one timestamp and writes them into the simulation's grid
buffers, and the `A3Met` class which ties the open gate, the archive reader
and the demultiplexer together behind the two calls a simulation makes every
timestep: `open_fields` and `get_fields`.
"""

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import xarray as xr

from a3met.catalog import FieldCatalog
from a3met.config import A3Config
from a3met.diagnostics import Diagnostics
from a3met.errors import IncompleteFieldSetError
from a3met.gate import OpenGate
from a3met.records import INVALID_KEY, ArchiveReader, TimeKey
from a3met.transfer import GridSpec

_log = logging.getLogger(__name__)

# Specific humidity: [kg/kg] -> [g/kg], with a floor instead of zero
# so that downstream logarithms stay finite
QV_SCALE = 1000.0
QV_MIN = 1e-32

# MOISTQ: [g/kg/day] -> [kg/kg/s]
MOISTQ_SCALE = 8.64e7

DERIVED_ATTRS = {
    "cldtops": {"long_name": "Highest level of positive convective mass flux", "units": "levels"},
    "sphu": {"long_name": "Specific humidity", "units": "g/kg"},
    "moistq": {"long_name": "Tendency of specific humidity", "units": "kg/kg/s"},
}


def convective_top_level(cmfmc: np.ndarray, nz: int | None = None) -> np.ndarray:
    """
    Compute the convective cloud top level of every column.

    Parameters
    ----------
    cmfmc : np.ndarray
        Convective mass flux dimensioned (nx, ny, levels).
    nz : int, optional
        Only the lowest `nz` levels are counted. Defaults to all levels.

    Returns
    -------
    np.ndarray
        (nx, ny) integer array: 1 plus the number of levels with
        strictly positive mass flux.
    """
    levels = cmfmc[:, :, :nz]
    return 1 + np.count_nonzero(levels > 0.0, axis=-1)


def scale_humidity(qv: np.ndarray) -> np.ndarray:
    return np.maximum(qv * QV_SCALE, QV_MIN)


def moisture_rate(moistq: np.ndarray) -> np.ndarray:
    # Precipitation is negative in the archive
    return -moistq / MOISTQ_SCALE


class MetFields(Mapping):
    """
    Grid buffers the reader writes into, keyed by target name.

    The buffers belong to the caller; the reader only assigns into them.

    Parameters
    ----------
    buffers : dict[str, np.ndarray]
        Buffers keyed by catalog target name, plus ``cldtops``.
    catalog : FieldCatalog, optional
        Catalog the buffers were laid out for, used to name dimensions.
    """

    def __init__(self, buffers: dict[str, np.ndarray], catalog: FieldCatalog | None = None):
        self._buffers = buffers
        self.catalog = catalog
        self._entries = {}
        if catalog is not None:
            self._entries = {entry.target: entry for entry in catalog.values()}

    @classmethod
    def allocate(cls, grid: GridSpec, catalog: FieldCatalog) -> "MetFields":
        """
        Allocate zeroed buffers for every catalog field.

        Parameters
        ----------
        grid : GridSpec
            Simulation grid.
        catalog : FieldCatalog
            Fields to allocate buffers for.

        Returns
        -------
        MetFields
            float64 buffers for each target plus an integer ``cldtops`` buffer.
        """
        buffers = {
            entry.target: np.zeros(entry.target_shape(grid)) for entry in catalog.values()
        }
        buffers["cldtops"] = np.zeros(grid.shape_2d, dtype=np.int32)
        return cls(buffers, catalog=catalog)

    def __getitem__(self, name: str) -> np.ndarray:
        return self._buffers[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._buffers)

    def __len__(self) -> int:
        return len(self._buffers)

    def __repr__(self) -> str:
        return f"MetFields({list(self._buffers)})"

    def _variable(self, name: str) -> tuple[tuple[str, ...], dict[str, str]]:
        data = self._buffers[name]
        entry = self._entries.get(name)
        if entry is not None:
            if entry.transfer.level_first:
                dims = ("lev", "lon", "lat")
            elif entry.transfer.edges:
                dims = ("lon", "lat", "ilev")
            else:
                dims = ("lon", "lat", "lev")
            attrs = entry.to_attrs()
        elif data.ndim == 2:
            dims = ("lon", "lat")
            attrs = {}
        else:
            dims = tuple(f"{name}_dim_{i}" for i in range(data.ndim))
            attrs = {}

        attrs.update(DERIVED_ATTRS.get(name, {}))
        return dims, attrs

    def to_dataset(self, time: TimeKey | None = None) -> xr.Dataset:
        """
        Export the buffers as an xarray Dataset.

        Parameters
        ----------
        time : TimeKey, optional
            If given, every variable gets a length-1 ``time`` dimension.

        Returns
        -------
        xr.Dataset
            One variable per buffer, copied out of the caller's arrays.
        """
        data_vars = {}
        for name, data in self._buffers.items():
            dims, attrs = self._variable(name)
            data_vars[name] = xr.Variable(dims, data.copy(), attrs=attrs)

        ds = xr.Dataset(data_vars)
        if time is not None:
            ds = ds.expand_dims(time=[time.timestamp])
        return ds


@dataclass
class ScanState:
    """
    Progress of one scan through the archive.

    Parameters
    ----------
    requested : TimeKey
        Timestamp being sought.
    matched_count : int
        Catalog fields found for `requested` so far.
    n_records : int
        Records read from the archive during the scan.
    """

    requested: TimeKey
    matched_count: int = 0
    n_records: int = 0


class FieldDemultiplexer:
    """
    Scan loop matching archive records against a field catalog.

    Parameters
    ----------
    reader : ArchiveReader
        Reader over the currently open archive.
    catalog : FieldCatalog
        Fields the archive is expected to contain.
    grid : GridSpec
        Archive grid and simulation window.
    diagnostics : Diagnostics, optional
        Sinks updated after every completed read.

    Attributes
    ----------
    last_processed : TimeKey
        Timestamp of the last completed read.
    scan : ScanState or None
        State of the most recent scan.
    n_reads : int
        Number of completed reads.
    """

    def __init__(
        self,
        reader: ArchiveReader,
        catalog: FieldCatalog,
        grid: GridSpec,
        diagnostics: Diagnostics | None = None,
    ):
        self.reader = reader
        self.catalog = catalog
        self.grid = grid
        self.diagnostics = diagnostics

        self.last_processed = INVALID_KEY
        self.scan: ScanState | None = None
        self.n_reads = 0

    def read_fields_for(self, requested: TimeKey, fields: Mapping[str, np.ndarray]) -> None:
        """
        Read every catalog field for `requested` into `fields`.

        Records for other timestamps and names outside the catalog are
        skipped. The scan stops as soon as the number of fields declared by
        the archive header has been found.

        Parameters
        ----------
        requested : TimeKey
            Timestamp to read.
        fields : Mapping[str, np.ndarray]
            Buffers keyed by catalog target, written in place.

        Raises
        ------
        IncompleteFieldSetError
            If the archive ends before all declared fields were found.
        ArchiveIOError
            If a record cannot be read or decoded.
        """
        if requested == self.last_processed:
            return

        scan = self.scan = ScanState(requested=requested)
        expected = self.reader.expected_field_count

        while True:
            record = self.reader.read_record()
            if record is None:
                self._check(scan, expected)
                break
            scan.n_records += 1

            entry = self.catalog.get(record.name)
            if entry is None:
                _log.debug("Searching for next A3 field, skipping %r", record.name)
                continue

            if record.time_key != requested:
                continue

            if entry.target not in fields:
                raise KeyError(f"No output buffer for A3 field {record.name!r} ({entry.target})")

            raw = record.values(entry.raw_shape(self.grid))
            entry.transfer(raw, fields[entry.target], self.grid)
            scan.matched_count += 1

            if scan.matched_count == expected:
                _log.info("Found all %d A3 met fields for %s", scan.matched_count, requested)
                break

        self.derive(fields)
        if self.diagnostics is not None:
            self.diagnostics.update(fields)

        self.n_reads += 1
        self.last_processed = requested

    @staticmethod
    def _check(scan: ScanState, expected: int) -> None:
        if scan.matched_count != expected:
            _log.error(
                "Not enough A3 fields found for %s! There are %d fields but only %d were found!",
                scan.requested,
                expected,
                scan.matched_count,
            )
            raise IncompleteFieldSetError(expected=expected, found=scan.matched_count)

    def derive(self, fields: Mapping[str, np.ndarray]) -> None:
        """
        Compute derived quantities in place from the just-read fields.

        Only the buffers present in `fields` are touched.
        """
        if "cmfmc" in fields and "cldtops" in fields:
            fields["cldtops"][...] = convective_top_level(fields["cmfmc"], nz=self.grid.nz)

        if "sphu" in fields:
            fields["sphu"][...] = scale_humidity(fields["sphu"])

        if "moistq" in fields:
            fields["moistq"][...] = moisture_rate(fields["moistq"])


class A3Met:
    """
    A3 met fields for a running simulation.

    Parameters
    ----------
    path_for : Callable[[TimeKey], Path | str]
        Resolves the archive path holding a timestamp.
    grid : GridSpec
        Archive grid and simulation window.
    catalog : FieldCatalog, optional
        Fields to read. Defaults to the MERRA A3 catalog.
    byteorder : str
        numpy byte order character of the archives.
    diagnostics : Diagnostics, optional
        Accumulation sinks. Defaults to both sinks switched off.
    """

    def __init__(
        self,
        path_for: Callable[[TimeKey], Path | str],
        grid: GridSpec,
        catalog: FieldCatalog | None = None,
        byteorder: str = ">",
        diagnostics: Diagnostics | None = None,
    ):
        self.path_for = path_for
        self.grid = grid
        self.catalog = catalog if catalog is not None else FieldCatalog.merra_a3()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics(grid)

        self.gate = OpenGate()
        self.reader = ArchiveReader(byteorder=byteorder)
        self.demux = FieldDemultiplexer(self.reader, self.catalog, grid, self.diagnostics)
        self.fields: MetFields | None = None

    @classmethod
    def from_config(
        cls,
        config: A3Config,
        path_for: Callable[[TimeKey], Path | str],
        catalog: FieldCatalog | None = None,
    ) -> "A3Met":
        """
        Create an A3Met instance from a configuration.

        Parameters
        ----------
        config : A3Config
            Grid, byte order and diagnostic switches.
        path_for : Callable[[TimeKey], Path | str]
            Resolves the archive path holding a timestamp.
        catalog : FieldCatalog, optional
            Fields to read. Defaults to the MERRA A3 catalog.

        Returns
        -------
        A3Met
            A reader with no archive open yet.
        """
        diagnostics = Diagnostics(
            config.grid, nd66=config.nd66, ld66=config.ld66, nd67=config.nd67
        )
        return cls(
            path_for=path_for,
            grid=config.grid,
            catalog=catalog,
            byteorder=config.byteorder,
            diagnostics=diagnostics,
        )

    def __enter__(self) -> "A3Met":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def last_processed(self) -> TimeKey:
        return self.demux.last_processed

    @property
    def n_reads(self) -> int:
        return self.demux.n_reads

    def open_fields(self, date: int, time: int) -> bool:
        """
        Open the archive for a timestep if it is due.

        Parameters
        ----------
        date : int
            YYYYMMDD of the timestep.
        time : int
            HHMMSS of the timestep.

        Returns
        -------
        bool
            True if an archive was (re)opened.
        """
        key = TimeKey(date=date, time=time)
        if not self.gate.should_open(key):
            return False

        self.reader.open(self.path_for(key))
        return True

    def get_fields(self, date: int, time: int, fields: MetFields | None = None) -> MetFields:
        """
        Read the fields of a timestep from the open archive.

        Parameters
        ----------
        date : int
            YYYYMMDD of the timestep.
        time : int
            HHMMSS of the timestep.
        fields : MetFields, optional
            Buffers to write into. Defaults to buffers owned by this reader.

        Returns
        -------
        MetFields
            The buffers that were written into.
        """
        if fields is None:
            if self.fields is None:
                self.fields = MetFields.allocate(self.grid, self.catalog)
            fields = self.fields

        key = TimeKey(date=date, time=time)
        if key == self.demux.last_processed:
            _log.info("A3 met fields for %s have been read already", key)
            return fields

        self.demux.read_fields_for(key, fields)
        return fields

    def close(self) -> None:
        self.reader.close()


def open_dataset(
    filename: Path | str,
    date: int,
    time: int,
    config: A3Config | None = None,
    catalog: FieldCatalog | None = None,
    grid: GridSpec | None = None,
    byteorder: str = ">",
) -> xr.Dataset:
    """
    Read one timestamp of an A3 archive as an xarray Dataset.

    Parameters
    ----------
    filename : Path or str
        Path to the A3 archive.
    date : int
        YYYYMMDD of the fields to read.
    time : int
        HHMMSS of the fields to read.
    config : A3Config, optional
        Supplies the grid and byte order. Diagnostic switches are ignored.
    catalog : FieldCatalog, optional
        Fields to read. Defaults to the MERRA A3 catalog.
    grid : GridSpec, optional
        Archive grid and simulation window, used when no `config` is given.
    byteorder : str
        numpy byte order character of the archive, used when no `config`
        is given.

    Returns
    -------
    xr.Dataset
        The fields, including derived quantities, with a ``time`` dimension.

    Raises
    ------
    ValueError
        If neither `config` nor `grid` is given, or both are.
    """
    if config is not None:
        if grid is not None:
            raise ValueError("Pass either config or grid, not both")
        grid, byteorder = config.grid, config.byteorder
    elif grid is None:
        raise ValueError("open_dataset requires a config or a grid")

    catalog = catalog if catalog is not None else FieldCatalog.merra_a3()
    key = TimeKey(date=date, time=time)
    fields = MetFields.allocate(grid, catalog)

    with ArchiveReader(byteorder=byteorder).open(filename) as reader:
        FieldDemultiplexer(reader, catalog, grid).read_fields_for(key, fields)

    return fields.to_dataset(time=key)
