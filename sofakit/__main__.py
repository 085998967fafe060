"""
sofakit-dbcheck: download every file of a remote SOFA database and check it loads and saves.

Usage:
    python -m sofakit                                   # crawl sofacoustics.org into ./urlDatabase
    python -m sofakit --target /data/sofa --attempts 3  # custom target and retry budget
"""
import argparse
import sys
import time

from rich.console import Console

from .crawler import DEFAULT_ROOT, Crawler

console = Console()


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="sofakit-dbcheck",
        description="Download every SOFA file of a remote database, load and save it, and journal the problems.",
    )
    parser.add_argument("--root", default=DEFAULT_ROOT, help="database server url (default: %(default)s)")
    parser.add_argument("--target", default="urlDatabase", help="local directory for files and log.csv (default: %(default)s)")
    parser.add_argument("--attempts", type=int, default=5, help="download attempts per file (default: %(default)s)")
    parser.add_argument("--timeout", type=float, default=60, help="per-request timeout in seconds (default: %(default)s)")
    args = parser.parse_args(argv)

    try:
        crawler = Crawler(args.root, args.target, attempts=args.attempts, timeout=args.timeout, console=console, shell=True)
    except (TypeError, ValueError) as exception:
        parser.error(str(exception))

    console.print()
    console.print("############################################")
    console.print("########   TEST SOFA URL DATABASES  ########")
    console.print("############################################")
    console.print()

    started = time.perf_counter()
    report = crawler.run()

    console.print()
    console.print("##############################################")
    console.print("##########   COMPLETED ALL CHECKS   ##########")
    console.print("##############################################")
    console.print(
        "%d directories, %d files, %d errors, %d warnings, %d retries in %.1f s" % (
            *report, time.perf_counter() - started
        )
    )
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
