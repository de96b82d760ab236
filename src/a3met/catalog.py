"""
Catalog of the fields an A3 archive is expected to contain.

The catalog maps archive field names to the simulation buffer each one is
written into and the layout transform used to get it there. It is fixed for
the lifetime of a reader.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from a3met.transfer import TRANSFER_3D, TRANSFER_3D_LP1, TRANSFER_A6, GridSpec, Transfer

# MERRA A3 field definitions
# name: (long name, units, target buffer, transform)
MERRA_A3_FIELDS = {
    "CLOUD": ("3-D cloud fraction", "1", "cldf", TRANSFER_A6),
    "CMFMC": ("Cloud mass flux", "kg/m2/s", "cmfmc", TRANSFER_3D_LP1),
    "DQIDTMST": ("Ice tendency in moist processes", "kg/kg/s", "dqidtmst", TRANSFER_3D),
    "DQLDTMST": ("Liquid tendency in moist processes", "kg/kg/s", "dqldtmst", TRANSFER_3D),
    "DQRCU": ("Precipitation production rate: convective", "kg/kg/s", "dqrcu", TRANSFER_3D),
    "DQRLSAN": ("Precipitation production rate: LS+anvil", "kg/kg/s", "dqrlsan", TRANSFER_3D),
    "DQVDTMST": ("Vapor tendency in moist processes", "kg/kg/s", "dqvdtmst", TRANSFER_3D),
    "DTRAIN": ("Detrainment mass flux", "kg/m2/s", "dtrain", TRANSFER_3D),
    "MOISTQ": ("Tendency of specific humidity", "g/kg/day", "moistq", TRANSFER_A6),
    "OPTDEPTH": ("In-cloud optical depth", "1", "optdep", TRANSFER_A6),
    "PFICU": ("Downward flux of ice precipitation: convective", "kg/m2/s", "pficu", TRANSFER_3D),
    "PFILSAN": ("Downward flux of ice precipitation: LS+anvil", "kg/m2/s", "pfilsan", TRANSFER_3D),
    "PFLCU": ("Downward flux of liquid precipitation: convective", "kg/m2/s", "pflcu", TRANSFER_3D),
    "PFLLSAN": ("Downward flux of liquid precipitation: LS+anvil", "kg/m2/s", "pfllsan", TRANSFER_3D),
    "QI": ("Cloud ice mixing ratio", "kg/kg", "qi", TRANSFER_3D),
    "QL": ("Cloud water mixing ratio", "kg/kg", "ql", TRANSFER_3D),
    "QV": ("Specific humidity", "kg/kg", "sphu", TRANSFER_3D),
    "REEVAPCN": ("Evaporation of precipitating condensate: convective", "kg/kg/s", "reevapcn", TRANSFER_3D),
    "REEVAPLS": ("Evaporation of precipitating condensate: LS+anvil", "kg/kg/s", "reevapls", TRANSFER_3D),
    "T": ("Temperature", "K", "t", TRANSFER_3D),
    "TAUCLI": ("In-cloud ice optical depth", "1", "taucli", TRANSFER_3D),
    "TAUCLW": ("In-cloud water optical depth", "1", "tauclw", TRANSFER_3D),
    "U": ("Eastward component of wind", "m/s", "uwnd", TRANSFER_3D),
    "V": ("Northward component of wind", "m/s", "vwnd", TRANSFER_3D),
}


@dataclass(frozen=True)
class FieldCatalogEntry:
    """
    One field an archive is expected to contain.

    Parameters
    ----------
    name : str
        Field name as written in the archive.
    target : str
        Key of the simulation buffer the field is written into.
    transfer : Transfer
        Layout transform from the raw archive array to the buffer.
    long_name : str
        Human readable description.
    units : str
        Units of the field as stored in the archive.
    """

    name: str
    target: str
    transfer: Transfer = TRANSFER_3D
    long_name: str = ""
    units: str = ""

    def raw_shape(self, grid: GridSpec) -> tuple[int, int, int]:
        return self.transfer.raw_shape(grid)

    def target_shape(self, grid: GridSpec) -> tuple[int, int, int]:
        return self.transfer.target_shape(grid)

    def to_attrs(self) -> dict[str, str]:
        """
        Get CF-style attributes for this field.

        Returns
        -------
        dict[str, str]
            long_name and units, omitting empty values.
        """
        attrs = {"long_name": self.long_name, "units": self.units}
        return {k: v for k, v in attrs.items() if v}


class FieldCatalog(Mapping):
    """
    Read-only mapping of archive field name to `FieldCatalogEntry`.

    Parameters
    ----------
    entries : iterable of FieldCatalogEntry
        Catalog entries. Names and targets must be unique.
    """

    def __init__(self, entries):
        self._entries: dict[str, FieldCatalogEntry] = {}
        targets = set()
        for entry in entries:
            if entry.name in self._entries:
                raise ValueError(f"Duplicate catalog field {entry.name!r}")
            if entry.target in targets:
                raise ValueError(f"Duplicate catalog target {entry.target!r}")
            self._entries[entry.name] = entry
            targets.add(entry.target)

    @classmethod
    def merra_a3(cls) -> "FieldCatalog":
        """
        Build the catalog of the MERRA A3 met fields.
        """
        return cls(
            FieldCatalogEntry(
                name=name,
                target=target,
                transfer=transfer,
                long_name=long_name,
                units=units,
            )
            for name, (long_name, units, target, transfer) in MERRA_A3_FIELDS.items()
        )

    def __getitem__(self, name: str) -> FieldCatalogEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FieldCatalog({list(self._entries)})"

    @property
    def targets(self) -> list[str]:
        return [entry.target for entry in self._entries.values()]
