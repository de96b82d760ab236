"""
Reader configuration.

The configuration file holds one ``key value`` pair per line; blank lines
and anything after ``#`` are ignored::

    # 2 x 2.5 global grid
    nx_global 144
    ny_global  91
    nz_global  72
    nd66 1
    ld66 38
"""

from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from a3met.transfer import GridSpec


@dataclass
class A3Config:
    """
    Configuration of an A3 reader.

    Parameters
    ----------
    grid : GridSpec
        Archive grid and simulation window.
    byteorder : str
        numpy byte order character of the archives (">" big, "<" little).
    nd66 : int
        ND66 diagnostic switch (3-D met fields).
    ld66 : int
        Number of levels saved by ND66.
    nd67 : int
        ND67 diagnostic switch (2-D met fields).
    """

    grid: GridSpec
    byteorder: str = ">"
    nd66: int = 0
    ld66: int = 0
    nd67: int = 0

    GRID_KEYS: ClassVar[tuple[str, ...]] = (
        "nx_global",
        "ny_global",
        "nz_global",
        "nx",
        "ny",
        "nz",
        "i0",
        "j0",
    )
    INT_KEYS: ClassVar[tuple[str, ...]] = ("nd66", "ld66", "nd67")

    def __post_init__(self):
        if self.byteorder not in ("<", ">", "="):
            raise ValueError(f"Invalid byte order {self.byteorder!r}")

    @classmethod
    def from_file(cls, file: Path | str) -> "A3Config":
        """
        Load an A3Config from a configuration file.

        Parameters
        ----------
        file : Path or str
            Path to the configuration file.

        Returns
        -------
        A3Config
            The parsed configuration.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If a key is unknown, repeated, or a grid dimension is missing.
        """
        path = Path(file)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        values = {}
        with path.open() as f:
            for lineno, line in enumerate(f, start=1):
                line = line.split("#", 1)[0].strip()
                if not line:
                    continue

                parts = line.split()
                if len(parts) != 2:
                    raise ValueError(f"{path}:{lineno}: expected 'key value', got {line!r}")

                key, value = parts
                if key in values:
                    raise ValueError(f"{path}:{lineno}: duplicate key {key!r}")
                values[key] = value

        return cls.from_dict(values)

    @classmethod
    def from_dict(cls, values: dict) -> "A3Config":
        known = set(cls.GRID_KEYS) | set(cls.INT_KEYS) | {"byteorder"}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        missing = [k for k in cls.GRID_KEYS[:3] if k not in values]
        if missing:
            raise ValueError(f"Missing grid dimensions: {missing}")

        grid = GridSpec(**{k: int(values[k]) for k in cls.GRID_KEYS if k in values})
        options = {k: int(values[k]) for k in cls.INT_KEYS if k in values}
        if "byteorder" in values:
            options["byteorder"] = str(values["byteorder"])

        return cls(grid=grid, **options)
