"""
Unit tests for the snapshot writer thread.
"""

import logging
import os
import threading

from tasktracker.store.persistence import SnapshotWriter


class TestSnapshotWriter:
    def test_last_submitted_snapshot_wins(self, tmp_path):
        path = tmp_path / "db.json"
        writer = SnapshotWriter(path)

        for i in range(20):
            writer.submit(f'{{"n": {i}}}')
        assert writer.flush(timeout=5.0)

        assert path.read_text(encoding="utf-8") == '{"n": 19}'
        assert writer.writes_completed == 20
        writer.close()

    def test_inline_write(self, tmp_path):
        path = tmp_path / "db.json"
        writer = SnapshotWriter(path)

        assert writer.write("{}") is True
        assert path.read_text(encoding="utf-8") == "{}"
        writer.close()

    def test_no_temp_file_left_behind(self, tmp_path):
        path = tmp_path / "db.json"
        writer = SnapshotWriter(path)
        writer.submit("{}")
        writer.close()

        assert sorted(os.listdir(tmp_path)) == ["db.json"]

    def test_failure_logged_not_raised(self, tmp_path, caplog):
        # The target is a directory, so the final rename fails.
        target = tmp_path / "db.json"
        target.mkdir()
        writer = SnapshotWriter(target)

        with caplog.at_level(logging.ERROR, logger="tasktracker.store.persistence"):
            writer.submit("{}")
            writer.flush(timeout=5.0)

        assert writer.writes_failed == 1
        assert "Failed to write snapshot" in caplog.text
        writer.close()

    def test_close_drains_queue(self, tmp_path):
        path = tmp_path / "db.json"
        writer = SnapshotWriter(path)
        writer.submit('{"a": []}')
        writer.close()

        assert path.read_text(encoding="utf-8") == '{"a": []}'
        assert writer.pending == 0

    def test_submit_after_close_writes_inline(self, tmp_path):
        path = tmp_path / "db.json"
        writer = SnapshotWriter(path)
        writer.close()
        writer.close()

        writer.submit('{"late": []}')
        assert path.read_text(encoding="utf-8") == '{"late": []}'

    def test_submit_racing_close_is_never_lost(self, tmp_path):
        path = tmp_path / "db.json"
        writer = SnapshotWriter(path)
        start = threading.Barrier(5)

        def submitter(n):
            start.wait()
            for i in range(50):
                writer.submit(f'{{"n": {n * 100 + i}}}')

        threads = [threading.Thread(target=submitter, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        start.wait()
        writer.close()
        for t in threads:
            t.join()

        assert writer.writes_completed == 4 * 50
        assert writer.pending == 0
