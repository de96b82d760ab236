"""
Open gate: decides when the next A3 archive has to be opened.

Each archive covers one day of 3-hour averages centered on the half hour,
so a new file is due whenever the 01:30 GMT fields are requested.
"""

from typing import ClassVar

from a3met.records import INVALID_KEY, TimeKey


class OpenGate:
    """
    Archive rollover policy.

    The gate remembers the key it was last asked about, so asking twice for
    the same timestep never opens the same file twice. This is independent
    of which timestamp was last *read*.

    Attributes
    ----------
    last_key : TimeKey
        Key passed on the previous call.
    first : bool
        True until the first call.
    """

    ROLLOVER_TIME: ClassVar[int] = 13000  # 01:30:00

    def __init__(self):
        self.last_key = INVALID_KEY
        self.first = True

    def should_open(self, requested: TimeKey) -> bool:
        """
        Check whether the archive for `requested` has to be (re)opened.

        Parameters
        ----------
        requested : TimeKey
            Timestamp about to be read.

        Returns
        -------
        bool
            True on the first call or at the rollover time, False for an
            immediate repeat of the previous key.
        """
        if requested == self.last_key:
            do_open = False
        else:
            do_open = self.first or requested.time == self.ROLLOVER_TIME

        self.last_key = requested
        self.first = False
        return do_open

    def reset(self) -> None:
        """Forget the last key so the next request opens an archive."""
        self.last_key = INVALID_KEY
        self.first = True
