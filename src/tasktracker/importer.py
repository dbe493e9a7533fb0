"""
Bulk task importer.

Reads a two-column CSV file (title,description) and creates one task per
row by POSTing to a running tasktracker server:

    tasktracker-import tasks.csv --url http://localhost:3333

The first row is treated as a header and skipped, as are blank lines.
Rows are sent one at a time, in file order, over a single
requests.Session so the connection is reused. A row that fails
(connection error or non-2xx answer) is logged and counted, and the import
carries on with the next row.
"""

import argparse
import csv
import logging
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Tuple

import requests

from .server import setup_logging


logger = logging.getLogger(__name__)


DEFAULT_URL = "http://localhost:3333"


@dataclass
class ImportReport:
    """Outcome of an import run."""

    sent: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.sent + self.failed

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def __str__(self) -> str:
        return f"{self.sent} task(s) imported, {self.failed} failed"


def read_rows(path: str) -> Iterator[Tuple[str, str]]:
    """
    Yield (title, description) pairs from a CSV file.

    Short rows are padded with empty strings and extra columns ignored.
    """
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f, delimiter=",")
        next(reader, None)  # header
        for record in reader:
            if not any(cell.strip() for cell in record):
                continue
            title, description = (list(record) + ["", ""])[:2]
            yield title, description


class BulkImporter:
    """
    Sends CSV rows to the tasks endpoint.

    Args:
        base_url: Server root, e.g. http://localhost:3333.
        session: Optional requests session (tests pass a fake one).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/tasks"

    def send(self, title: str, description: str) -> bool:
        """POST one task. Returns False (after logging) on any failure."""
        try:
            logger.debug(f"Sending POST request to {self.endpoint}")
            response = self.session.post(
                self.endpoint,
                json={"title": title, "description": description},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return True
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            logger.error(f"Import of {title!r} rejected ({status})")
            return False
        except requests.RequestException as exc:
            logger.error(f"Import of {title!r} failed: {exc}")
            return False

    def import_rows(self, rows) -> ImportReport:
        report = ImportReport()
        for title, description in rows:
            if self.send(title, description):
                report.sent += 1
            else:
                report.failed += 1
        return report

    def import_file(self, path: str) -> ImportReport:
        logger.info(f"Importing {path} into {self.endpoint}")
        report = self.import_rows(read_rows(path))
        logger.info(f"Import finished: {report}")
        return report

    def close(self) -> None:
        self.session.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tasktracker-import",
        description="Create tasks from a title,description CSV file",
    )
    parser.add_argument("csv_file", help="CSV file with a header row")
    parser.add_argument(
        "--url", "-u",
        default=DEFAULT_URL,
        help=f"Server base URL (default: {DEFAULT_URL})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=15,
        help="Per-request timeout in seconds (default: 15)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    importer = BulkImporter(args.url, timeout=args.timeout)
    try:
        report = importer.import_file(args.csv_file)
    except (OSError, UnicodeDecodeError) as exc:
        logger.error(f"Cannot read {args.csv_file}: {exc}")
        return 1
    finally:
        importer.close()

    print(report)
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
