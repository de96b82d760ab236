"""
a3met: Python package for reading MERRA A3 meteorological archives.

This package provides tools to read the 3-hour time-averaged ("A3") met
fields archived for atmospheric transport and chemistry models, one
timestamp at a time, into the simulation's grid buffers.
"""

__version__ = "2025.10.0"
__author__ = "James Mineau"
__email__ = "jameskmineau@gmail.com"

from .a3met import A3Met, FieldDemultiplexer, MetFields, open_dataset
from .catalog import FieldCatalog, FieldCatalogEntry
from .config import A3Config
from .errors import A3Error, ArchiveIOError, ArchiveNotFoundError, IncompleteFieldSetError
from .records import ArchiveReader, TimeKey
from .transfer import GridSpec

__all__ = [
    "A3Met",
    "A3Config",
    "A3Error",
    "ArchiveIOError",
    "ArchiveNotFoundError",
    "ArchiveReader",
    "FieldCatalog",
    "FieldCatalogEntry",
    "FieldDemultiplexer",
    "GridSpec",
    "IncompleteFieldSetError",
    "MetFields",
    "TimeKey",
    "open_dataset",
]
