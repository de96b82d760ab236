"""
Grid description and layout transforms for A3 met fields.

Archive payloads are stored on the global grid as single precision arrays
dimensioned (nx_global, ny_global, nz_global). The simulation works on a
horizontal window of that grid, in double precision, in one of two layouts:
(I, J, L) for most fields or (L, I, J) for the cloud fields. Each transform
here maps one raw layout onto one target layout and can be exercised without
any file I/O.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class GridSpec:
    """
    Global archive grid and the simulation window inside it.

    Parameters
    ----------
    nx_global : int
        Number of archive grid points in the x-direction (longitude).
    ny_global : int
        Number of archive grid points in the y-direction (latitude).
    nz_global : int
        Number of archive vertical layers.
    nx : int, optional
        Window size in x. Defaults to `nx_global`.
    ny : int, optional
        Window size in y. Defaults to `ny_global`.
    nz : int, optional
        Number of simulation layers, taken from the bottom. Defaults to `nz_global`.
    i0 : int
        x-offset of the window in the global grid.
    j0 : int
        y-offset of the window in the global grid.
    """

    nx_global: int
    ny_global: int
    nz_global: int
    nx: int | None = None
    ny: int | None = None
    nz: int | None = None
    i0: int = 0
    j0: int = 0

    def __post_init__(self):
        # Frozen dataclass: fill window defaults through object.__setattr__
        for name, default in (
            ("nx", self.nx_global),
            ("ny", self.ny_global),
            ("nz", self.nz_global),
        ):
            if getattr(self, name) is None:
                object.__setattr__(self, name, default)

        if min(self.nx_global, self.ny_global, self.nz_global) < 1:
            raise ValueError("Global grid dimensions must be positive")
        if min(self.nx, self.ny, self.nz) < 1 or min(self.i0, self.j0) < 0:
            raise ValueError("Window dimensions must be positive and offsets non-negative")
        if self.i0 + self.nx > self.nx_global or self.j0 + self.ny > self.ny_global:
            raise ValueError("Window does not fit inside the global grid")
        if self.nz > self.nz_global:
            raise ValueError("Window has more layers than the global grid")

    @property
    def shape_2d(self) -> tuple[int, int]:
        return (self.nx, self.ny)

    @property
    def window(self) -> tuple[slice, slice]:
        """
        Horizontal slices selecting the window from a global array.
        """
        return (
            slice(self.i0, self.i0 + self.nx),
            slice(self.j0, self.j0 + self.ny),
        )


@dataclass(frozen=True)
class Transfer:
    """
    Layout transform from a raw archive array to a simulation buffer.

    Parameters
    ----------
    name : str
        Short name of the transform.
    edges : bool
        If True the field lives on layer edges and carries one extra level.
    level_first : bool
        If True the target is laid out (L, I, J) instead of (I, J, L).
    """

    name: str
    edges: bool = False
    level_first: bool = False

    def _levels(self, nz: int) -> int:
        return nz + 1 if self.edges else nz

    def raw_shape(self, grid: GridSpec) -> tuple[int, int, int]:
        """
        Shape of the archive payload for this transform.

        Parameters
        ----------
        grid : GridSpec
            Archive grid and simulation window.

        Returns
        -------
        tuple[int, int, int]
            (nx_global, ny_global, levels) in Fortran order.
        """
        return (grid.nx_global, grid.ny_global, self._levels(grid.nz_global))

    def target_shape(self, grid: GridSpec) -> tuple[int, int, int]:
        """
        Shape of the simulation buffer this transform writes into.

        Parameters
        ----------
        grid : GridSpec
            Archive grid and simulation window.

        Returns
        -------
        tuple[int, int, int]
            (nx, ny, levels), or (levels, nx, ny) when `level_first` is set.
        """
        nz = self._levels(grid.nz)
        if self.level_first:
            return (nz, grid.nx, grid.ny)
        return (grid.nx, grid.ny, nz)

    def __call__(self, raw: np.ndarray, out: np.ndarray, grid: GridSpec) -> np.ndarray:
        """
        Copy the simulation window of `raw` into `out`.

        Parameters
        ----------
        raw : np.ndarray
            Archive array of shape `raw_shape(grid)`.
        out : np.ndarray
            Caller-owned buffer of shape `target_shape(grid)`, written in place.
        grid : GridSpec
            Archive grid and simulation window.

        Returns
        -------
        np.ndarray
            `out`, for convenience.
        """
        if raw.shape != self.raw_shape(grid):
            raise ValueError(
                f"{self.name}: raw array has shape {raw.shape}, expected {self.raw_shape(grid)}"
            )
        if out.shape != self.target_shape(grid):
            raise ValueError(
                f"{self.name}: buffer has shape {out.shape}, expected {self.target_shape(grid)}"
            )

        ii, jj = grid.window
        window = raw[ii, jj, : self._levels(grid.nz)]
        if self.level_first:
            window = np.moveaxis(window, -1, 0)

        out[...] = window
        return out


# (I,J,L) fields on layer centers
TRANSFER_3D = Transfer("3d")

# (I,J,L+1) fields on layer edges, e.g. convective mass flux
TRANSFER_3D_LP1 = Transfer("3d_lp1", edges=True)

# (L,I,J) fields used by the cloud and optical depth code
TRANSFER_A6 = Transfer("a6", level_first=True)
