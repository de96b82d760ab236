"""
Running-sum diagnostics fed by the A3 reader.

ND66 accumulates selected 3-D met fields level by level, ND67 accumulates
2-D met fields. Each sink only exists, and is only updated, when it is
switched on in the configuration.
"""

from collections.abc import Mapping

import numpy as np

from a3met.transfer import GridSpec

# ND66 slots, in order (1-based slot = index + 1)
ND66_FIELDS = ("uwnd", "vwnd", "t", "sphu", "cmfmc", "dtrain")

# ND67 holds more 2-D fields than the A3 reader provides
ND67_SLOTS = 23
ND67_FIELDS = {"cldtops": 16}  # max cloud top height [levels]


class Diagnostics:
    """
    The ND66 (3-D) and ND67 (2-D) accumulation arrays.

    Parameters
    ----------
    grid : GridSpec
        Simulation grid.
    nd66 : int
        ND66 switch; the sink is enabled when positive.
    ld66 : int
        Number of levels accumulated by ND66. Non-positive or too large
        values fall back to all simulation layers.
    nd67 : int
        ND67 switch; the sink is enabled when positive.

    Attributes
    ----------
    ad66 : np.ndarray or None
        (nx, ny, ld66, 6) accumulator, None when ND66 is off.
    ad67 : np.ndarray or None
        (nx, ny, 23) accumulator, None when ND67 is off.
    """

    def __init__(self, grid: GridSpec, nd66: int = 0, ld66: int = 0, nd67: int = 0):
        self.ld66 = ld66 if 0 < ld66 <= grid.nz else grid.nz

        self.ad66 = None
        if nd66 > 0:
            self.ad66 = np.zeros((grid.nx, grid.ny, self.ld66, len(ND66_FIELDS)))

        self.ad67 = None
        if nd67 > 0:
            self.ad67 = np.zeros((grid.nx, grid.ny, ND67_SLOTS))

    @property
    def nd66_enabled(self) -> bool:
        return self.ad66 is not None

    @property
    def nd67_enabled(self) -> bool:
        return self.ad67 is not None

    def accumulate_3d(self, fields: Mapping[str, np.ndarray]) -> None:
        if not self.nd66_enabled:
            return
        for slot, name in enumerate(ND66_FIELDS):
            if name in fields:
                self.ad66[:, :, :, slot] += fields[name][:, :, : self.ld66]

    def accumulate_2d(self, fields: Mapping[str, np.ndarray]) -> None:
        if not self.nd67_enabled:
            return
        for name, slot in ND67_FIELDS.items():
            if name in fields:
                self.ad67[:, :, slot - 1] += fields[name]

    def update(self, fields: Mapping[str, np.ndarray]) -> None:
        """
        Add the just-read fields to every enabled sink.
        """
        self.accumulate_3d(fields)
        self.accumulate_2d(fields)
