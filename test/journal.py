"""
Crawler journal format tests.
"""
import datetime
import tempfile
import unittest
from pathlib import Path
from unittest import TestCase

from sofakit.journal import HEADER, Journal, Severity

MOMENT = datetime.datetime(2026, 10, 17, 13, 27, 0)


class JournalTest(TestCase):
    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()
        self.addCleanup(self.directory.cleanup)
        self.path = Path(self.directory.name) / "nested" / "log.csv"
        self.journal = Journal(self.path, clock=lambda: MOMENT)

    def testStartWritesBannerAndHeader(self):
        self.journal.start()
        self.assertEqual(self.path.read_text(encoding="utf-8").splitlines(), [
            "*** Checking SOFA files for errors and warnings while downloading, loading & saving; "
            "start time: 17.10.2026 - 13:27:00",
            "",
            "TYPE\tOperation\tMessage\tFile/Link",
        ])

    def testCompleteLayout(self):
        self.journal.start()
        self.journal.append(Severity.RETRY, "download", "attempt failed", "https://example.org/a.sofa")
        self.journal.append("ERROR", "load", "not a SOFA file", Path("/data/a.sofa"))
        self.journal.finish()

        lines = self.path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(lines[3:], [
            "RETRY\tdownload\tattempt failed\thttps://example.org/a.sofa",
            "ERROR\tload\tnot a SOFA file\t/data/a.sofa",
            "",
            "*** Checks done; end time: 17.10.2026 - 13:27:00",
        ])

    def testRows(self):
        self.journal.start()
        self.journal.append(Severity.WARNING, "save", "attribute missing", "/data/a.sofa")
        self.journal.finish()
        self.assertEqual(self.journal.rows(), [
            (Severity.WARNING, "save", "attribute missing", "/data/a.sofa"),
        ])

    def testFieldsAreFlattened(self):
        self.journal.start()
        self.journal.append(Severity.WARNING, "load", "first line\n\tsecond  line", "/data/a.sofa")
        self.assertEqual(self.journal.rows(), [
            (Severity.WARNING, "load", "first line second line", "/data/a.sofa"),
        ])

    def testStartTruncates(self):
        self.journal.start()
        self.journal.append(Severity.ERROR, "load", "broken", "/data/a.sofa")
        self.journal.start()
        self.assertEqual(self.journal.rows(), [])

    def testUnknownSeverity(self):
        self.journal.start()
        with self.assertRaises(ValueError):
            self.journal.append("FATAL", "load", "broken", "/data/a.sofa")

    def testHeaderIsNotARow(self):
        self.assertEqual(HEADER[0], "TYPE")
        self.journal.start()
        self.assertEqual(self.journal.rows(), [])

    def testClockMustBeCallable(self):
        with self.assertRaises(TypeError):
            Journal(self.path, clock=MOMENT)


if __name__ == "__main__":
    unittest.main()
