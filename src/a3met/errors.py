"""
Exceptions raised while reading A3 met field archives.

Every error here is fatal for the run: a missing or corrupt archive cannot
be waited out, so nothing in the package retries.
"""


class A3Error(Exception):
    """Base class for all a3met errors."""


class ArchiveNotFoundError(A3Error, FileNotFoundError):
    """The archive path does not resolve to an existing, readable file."""


class ArchiveIOError(A3Error, OSError):
    """A low-level failure while opening or reading an archive."""


class IncompleteFieldSetError(A3Error):
    """
    Raised when the stream ends before every expected field was found.

    Parameters
    ----------
    expected : int
        Number of fields declared by the archive header.
    found : int
        Number of fields matched for the requested timestamp.
    """

    def __init__(self, expected: int, found: int):
        self.expected = expected
        self.found = found
        super().__init__(
            f"Not enough A3 fields found! "
            f"There are {expected} fields but only {found} were found!"
        )
