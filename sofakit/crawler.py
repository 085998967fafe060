"""
SOFA database crawler: download every remote file and check it survives a load/save round trip.

What it does
- Lists the subdirectories of <root>/database/ (an Apache-style index page).
- Lists the *.sofa files of every subdirectory and downloads them into
  <target>/<subdirectory>/, retrying failed downloads with a growing pause.
- Loads each file with sofar.read_sofa and saves it uncompressed to <target>/temp.sofa
  with sofar.write_sofa.
- Journals (see sofakit.journal) one row per warning or error, and one RETRY row per
  failed download attempt, into <target>/log.csv.

Failure policy
- A subdirectory that cannot be listed or created locally is journaled as an ERROR and skipped.
- Listed names are percent-decoded and must stay a single path component; other names
  are journaled as an ERROR and skipped, so nothing is written outside <target>.
- A file that cannot be downloaded after all attempts, loaded or saved is journaled as an
  ERROR; warnings raised while loading or saving are journaled as WARNING rows.
- The crawl always moves on to the next file.

Example
    >>> crawler = Crawler("https://sofacoustics.org/data", "./urlDatabase", attempts=3)
    >>> report = crawler.run()
    >>> report.errors
    0
"""
import functools
import re
import time
import urllib.parse
import warnings
from pathlib import Path, PurePosixPath
from typing import NamedTuple

import requests
import sofar
from rich.console import Console

from .faults import *
from .journal import Journal, Severity
from .utils import *

DEFAULT_ROOT = "https://sofacoustics.org/data"

_DIRECTORY = re.compile(r'alt="\[DIR\]"></td><td><a href="([^"]+?)/"')
_ENTRY = re.compile(r'</td><td><a href="([^"]+?)">')


class Report(NamedTuple):
    """
    Summary of a crawl.
    """
    directories: int
    files: int
    errors: int
    warnings: int
    retries: int


def _sanitize_positive(name, value, /, *, integral=False, zero=True):
    kind = int if integral else int | float
    if isinstance(value, bool) or not isinstance(value, kind):
        raise TypeError(f"crawler {name!r} must be a{'n integer' if integral else ' number'}")
    if integral and value < 1:
        raise ValueError(f"crawler {name!r} must be at least 1")
    if value < 0 or (not zero and value == 0):
        raise ValueError(f"crawler {name!r} must be {'non-negative' if zero else 'positive'}")
    return value


def _sanitize_callable(name, value, default, /):
    value = coalesce(value, default)
    if not callable(value):
        raise TypeError(f"crawler {name!r} must be callable")
    return value


def directories(html, /):
    """
    Return the subdirectory names of an index page (without trailing slash).
    """
    return _DIRECTORY.findall(html)


def entries(html, /, *, suffix=".sofa"):
    """
    Return the file names of an index page ending with `suffix`.
    """
    return [name for name in _ENTRY.findall(html) if name.endswith(suffix)]


def localname(name, /):
    """
    Return the local name of a listed (percent-encoded) entry, or None when the
    decoded name is not a single path component.

        >>> localname("My%20Set")
        'My Set'
        >>> localname("..%2F..%2Fescaped.sofa") is None
        True
    """
    decoded = urllib.parse.unquote(name)
    if decoded in ("", ".", "..") or "\\" in decoded or "\x00" in decoded:
        return None
    if PurePosixPath(decoded).name != decoded:
        return None
    return decoded


class Crawler:
    """
    Crawl a remote SOFA database and check every file.

    Parameters
    - root: str, base url of the database server (the listing lives at <root>/database/).
    - target: str | Path, local directory receiving the files, the journal and temp.sofa.
    - attempts: int, download attempts per file before it is skipped.
    - timeout: number, per-request timeout in seconds.
    - agent: str, User-Agent header.
    - pause: number, base pause in seconds; attempt n waits n * pause, a failed listing waits pause.
    - throttle: number, pause after every file (the server drops requests when hammered).
    - session: requests.Session (a new one when omitted).
    - loader: Callable[[str], object], reads a SOFA file (sofar.read_sofa).
    - saver: Callable[[str, object], None], writes a SOFA file (sofar.write_sofa, uncompressed).
    - sleep: Callable[[float], None], pause implementation (time.sleep).
    - console: rich Console for progress messages.
    - shell: bool, print warnings on the console instead of emitting them with warnings.warn.
    """

    def __init__(
            self,
            root=DEFAULT_ROOT,
            target="urlDatabase",
            /,
            *,
            attempts=5,
            timeout=60,
            agent="Mozilla",
            pause=5,
            throttle=0.01,
            session=Unset,
            loader=Unset,
            saver=Unset,
            sleep=Unset,
            console=Unset,
            shell=False,
    ):
        if not isinstance(root, str) or not (root := root.strip().rstrip("/")):
            raise ValueError("crawler 'root' must be a non-empty url")
        if not isinstance(agent, str) or not agent.strip():
            raise ValueError("crawler 'agent' must be a non-empty string")

        self.root = root
        self.target = Path(target)
        self.attempts = _sanitize_positive("attempts", attempts, integral=True)
        self.timeout = _sanitize_positive("timeout", timeout, zero=False)
        self.pause = _sanitize_positive("pause", pause)
        self.throttle = _sanitize_positive("throttle", throttle)
        self.loader = _sanitize_callable("loader", loader, functools.partial(sofar.read_sofa, verbose=False))
        self.saver = _sanitize_callable("saver", saver, functools.partial(sofar.write_sofa, compression=0))
        self.sleep = _sanitize_callable("sleep", sleep, time.sleep)
        self.console = coalesce(console, Console())
        self.shell = bool(shell)

        self.session = requests.Session() if session is Unset else session
        self.session.headers["User-Agent"] = agent

        self.journal = Journal(self.target / "log.csv")
        self.temporary = self.target / "temp.sofa"
        self._counts = dict.fromkeys(("directories", "files", "errors", "warnings", "retries"), 0)

    @property
    def database(self):
        return self.root + "/database/"

    def _warn(self, warning):
        trigger(warning, shell=self.shell, caller="sofakit-dbcheck")

    def _record(self, severity, operation, message, link):
        self.journal.append(severity, operation, message, link)
        match severity:
            case Severity.ERROR:
                self._counts["errors"] += 1
            case Severity.WARNING:
                self._counts["warnings"] += 1
            case Severity.RETRY:
                self._counts["retries"] += 1

    def _skip(self, link, reason):
        self._record(Severity.ERROR, "listing", str(reason), link)
        self._warn(ListingFailedWarning(
            "cannot list %s: %s" % (link, reason),
            title="listing failed",
            code=FaultCode.LISTING_FAILED,
            operation="listing",
            link=link,
            hint="the subdirectory is skipped",
        ))

    def fetch(self, link, /):
        """
        Return the text of a remote page (raises requests exceptions).
        """
        response = self.session.get(link, timeout=self.timeout)
        response.raise_for_status()
        return response.text

    def download(self, link, path, /):
        """
        Download `link` into `path`, retrying up to `attempts` times.

        Returns the last exception when every attempt failed, None on success.
        """
        for attempt in range(1, self.attempts + 1):
            try:
                response = self.session.get(link, timeout=self.timeout, stream=True)
                try:
                    response.raise_for_status()
                    with open(path, "wb") as file:
                        for chunk in response.iter_content(chunk_size=1 << 16):
                            file.write(chunk)
                finally:
                    response.close()
                return None
            except (requests.RequestException, OSError) as exception:
                if attempt == self.attempts:
                    return exception
                self.console.print(
                    "download attempt failed, retry downloading (%d/%d) from: %s" % (attempt, self.attempts - 1, link)
                )
                self._record(
                    Severity.RETRY,
                    "download",
                    "download attempt failed for the %d. time, wait and retry..." % attempt,
                    link,
                )
                self._warn(DownloadRetryWarning(
                    "download attempt %d of %d failed: %s" % (attempt, self.attempts, exception),
                    title="download retry",
                    code=FaultCode.DOWNLOAD_RETRY,
                    operation="download",
                    link=link,
                    hint="waiting %g seconds before the next attempt" % (attempt * self.pause),
                ))
                self.sleep(attempt * self.pause)

    def check(self, path, /):
        """
        Load `path` and save it to the temporary file.

        Returns a list of (severity, operation, message) findings, empty when the file
        went through without warnings.
        """
        findings = []
        sofa, failed = self._guarded("load", findings, self.loader, str(path))
        if not failed:
            self._guarded("save", findings, self.saver, str(self.temporary), sofa)
        return findings

    @staticmethod
    def _guarded(operation, findings, action, /, *args):
        """
        Run `action(*args)` collecting its warnings, then its error, into `findings`.

        Returns (result, failed).
        """
        error = None
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                result = action(*args)
            except Exception as exception:  # NOQA: the SOFA stack raises anything
                result, error = None, exception
        findings.extend((Severity.WARNING, operation, str(item.message)) for item in caught)
        if error is not None:
            findings.append((Severity.ERROR, operation, str(error) or type(error).__name__))
        return result, error is not None

    def crawl(self, subdirectory, /):
        """
        Download and check every SOFA file of one database subdirectory.
        """
        link = self.database + subdirectory
        if (local := localname(subdirectory)) is None:
            return self._skip(link, "directory name %r is not a single path component" % subdirectory)
        try:
            content = self.fetch(link)
            folder = self.target / local
            folder.mkdir(parents=True, exist_ok=True)
        except (requests.RequestException, OSError) as exception:
            self._skip(link, exception)
            self.sleep(self.pause)
            return

        self.console.print("    from: %s" % link)
        self.console.print("    to:   %s" % folder)

        for name in entries(content):
            source = link + "/" + name
            self._counts["files"] += 1

            if (local := localname(name)) is None:
                message = "file name %r is not a single path component" % name
                self._record(Severity.ERROR, "download", message, source)
                self._warn(DownloadFailedWarning(
                    "download refused: %s" % message,
                    title="download failed",
                    code=FaultCode.DOWNLOAD_FAILED,
                    operation="download",
                    link=source,
                    hint="the file is skipped",
                ))
                continue

            path = folder / local
            if exception := self.download(source, path):
                self._record(Severity.ERROR, "download", str(exception), path)
                self._warn(DownloadFailedWarning(
                    "download failed after %d attempts: %s" % (self.attempts, exception),
                    title="download failed",
                    code=FaultCode.DOWNLOAD_FAILED,
                    operation="download",
                    link=source,
                    hint="the file is skipped",
                ))
            else:
                for severity, operation, message in self.check(path):
                    self._record(severity, operation, message, path)
                    if severity is not Severity.ERROR:
                        warning, code, hint = RoundTripWarning, FaultCode.ROUNDTRIP_WARNING, "the file was processed anyway"
                    elif operation == "load":
                        warning, code, hint = LoadFailedWarning, FaultCode.LOAD_FAILED, "the file is skipped"
                    else:
                        warning, code, hint = SaveFailedWarning, FaultCode.SAVE_FAILED, "the file is skipped"
                    self._warn(warning(
                        "%s %s: %s" % (operation, path.name, message),
                        title="%s %s" % (operation, severity.lower()),
                        code=code,
                        operation=operation,
                        link=str(path),
                        hint=hint,
                    ))

            self.sleep(self.throttle)

    def run(self):
        """
        Crawl the whole database and return a Report.

        A failure to list the database root itself propagates (requests exceptions):
        there is nothing to crawl.
        """
        self._counts = dict.fromkeys(self._counts, 0)
        self.target.mkdir(parents=True, exist_ok=True)
        self.journal.start()
        self.console.print("### See log file for errors and warnings: %s" % self.journal.path)

        try:
            subdirectories = directories(self.fetch(self.database))
            for index, subdirectory in enumerate(subdirectories, 1):
                self._counts["directories"] += 1
                self.console.print()
                self.console.print("### Downloading and checking URL database %d from %d: %s" % (
                    index, len(subdirectories), urllib.parse.unquote(subdirectory)
                ))
                self.crawl(subdirectory)
        finally:
            self.journal.finish()

        self.console.print("### See log file for errors and warnings: %s" % self.journal.path)
        return Report(**self._counts)


__all__ = (
    "DEFAULT_ROOT",
    "Report",
    "Crawler",
    "directories",
    "entries",
    "localname",
)
