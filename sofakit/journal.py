"""
Crawler journal: a flat, tab-separated log of what went wrong.

Layout
    *** Checking SOFA files for errors and warnings while downloading, loading & saving; start time: 17.10.2026 - 13:27:00
    <empty line>
    TYPE	Operation	Message	File/Link
    ERROR	load	...	/path/to/file.sofa
    RETRY	download	...	https://...
    <empty line>
    *** Checks done; end time: 17.10.2026 - 13:42:10

The file is opened, appended and closed on every write so a crash leaves every
row written so far on disk.
"""
import datetime
from enum import StrEnum
from pathlib import Path

from .utils import Unset, coalesce

TIMESTAMP = "%d.%m.%Y - %H:%M:%S"
HEADER = ("TYPE", "Operation", "Message", "File/Link")


class Severity(StrEnum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    RETRY = "RETRY"


def _clean(field, /):
    # Tabs and line breaks would split a row.
    return " ".join(str(field).split())


class Journal:
    """
    Append-only journal file.

    Parameters
    - path: str | Path, the log file (parent directories are created on start()).
    - clock: Callable[[], datetime], timestamp source (datetime.now by default).
    """

    def __init__(self, path, /, *, clock=Unset):
        self.path = Path(path)
        self.clock = coalesce(clock, datetime.datetime.now)
        if not callable(self.clock):
            raise TypeError("Journal() 'clock' must be callable")

    def _stamp(self):
        return self.clock().strftime(TIMESTAMP)

    def _write(self, text, mode="a"):
        with self.path.open(mode, encoding="utf-8") as file:
            file.write(text)

    def start(self):
        """
        Truncate the file and write the start banner and the column header.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write(
            "*** Checking SOFA files for errors and warnings while downloading, loading & saving; start time: %s\n\n%s" % (
                self._stamp(), "\t".join(HEADER)
            ),
            "w",
        )

    def append(self, severity, operation, message, link, /):
        """
        Append one row: severity (ERROR, WARNING or RETRY), operation, message, file or link.
        """
        severity = Severity(severity)
        self._write("\n" + "\t".join(map(_clean, (severity, operation, message, link))))

    def finish(self):
        """
        Append the completion banner.
        """
        self._write("\n\n*** Checks done; end time: %s" % self._stamp())

    def rows(self):
        """
        Return the journal's rows as (severity, operation, message, link) tuples.
        """
        rows = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            fields = line.split("\t")
            if len(fields) == len(HEADER) and fields[0] in Severity.__members__:
                rows.append((Severity(fields[0]), *fields[1:]))
        return rows


__all__ = (
    "Severity",
    "Journal",
)
