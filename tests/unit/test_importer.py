"""
Unit tests for the CSV bulk importer. The HTTP session is faked.
"""

import logging

import pytest
import requests

from tasktracker import importer
from tasktracker.importer import BulkImporter, ImportReport, read_rows


class FakeResponse:
    def __init__(self, status_code=201):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """Records posts; answers from a list of status codes or exceptions."""

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.posts = []
        self.closed = False

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        answer = self.answers.pop(0) if self.answers else 201
        if isinstance(answer, Exception):
            raise answer
        return FakeResponse(answer)

    def close(self):
        self.closed = True


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "tasks.csv"
    path.write_text(
        "title,description\n"
        "Buy milk,2 litres\n"
        "\n"
        "Walk dog\n"
        '"Pay, taxes","before April",extra\n',
        encoding="utf-8",
    )
    return path


class TestReadRows:
    def test_header_and_blank_lines_skipped(self, csv_file):
        assert list(read_rows(csv_file)) == [
            ("Buy milk", "2 litres"),
            ("Walk dog", ""),
            ("Pay, taxes", "before April"),
        ]

    def test_header_only(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("title,description\n", encoding="utf-8")
        assert list(read_rows(path)) == []


class TestBulkImporter:
    def test_rows_posted_in_order(self, csv_file):
        session = FakeSession()
        report = BulkImporter("http://tasks.local:3333/", session=session, timeout=3).import_file(csv_file)

        assert report == ImportReport(sent=3, failed=0)
        assert [post[0] for post in session.posts] == ["http://tasks.local:3333/tasks"] * 3
        assert [post[1]["title"] for post in session.posts] == ["Buy milk", "Walk dog", "Pay, taxes"]
        assert session.posts[0][1] == {"title": "Buy milk", "description": "2 litres"}
        assert session.posts[0][2] == 3

    def test_failures_counted_and_import_continues(self, csv_file, caplog):
        session = FakeSession([500, requests.ConnectionError("refused"), 201])

        with caplog.at_level(logging.ERROR, logger="tasktracker.importer"):
            report = BulkImporter(session=session).import_file(csv_file)

        assert report.sent == 1
        assert report.failed == 2
        assert report.total == 3
        assert not report.ok
        assert len(session.posts) == 3
        assert "rejected (500)" in caplog.text
        assert "refused" in caplog.text

    def test_close(self):
        session = FakeSession()
        BulkImporter(session=session).close()
        assert session.closed


class TestMain:
    def test_success(self, csv_file, monkeypatch, capsys):
        session = FakeSession()
        monkeypatch.setattr(importer.requests, "Session", lambda: session)

        assert importer.main([str(csv_file), "--url", "http://localhost:4000"]) == 0
        assert "3 task(s) imported, 0 failed" in capsys.readouterr().out
        assert session.posts[0][0] == "http://localhost:4000/tasks"
        assert session.closed

    def test_failed_row_gives_nonzero_exit(self, csv_file, monkeypatch):
        monkeypatch.setattr(importer.requests, "Session", lambda: FakeSession([400]))
        assert importer.main([str(csv_file)]) == 1

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(importer.requests, "Session", lambda: FakeSession())
        assert importer.main([str(tmp_path / "missing.csv")]) == 1

    def test_undecodable_file(self, tmp_path, monkeypatch, caplog):
        path = tmp_path / "latin1.csv"
        path.write_bytes(b"title,description\n\xff\xfe,x\n")
        session = FakeSession()
        monkeypatch.setattr(importer.requests, "Session", lambda: session)

        with caplog.at_level(logging.ERROR, logger="tasktracker.importer"):
            assert importer.main([str(path)]) == 1

        assert "Cannot read" in caplog.text
        assert session.posts == []
        assert session.closed
