"""
=============================================================================
SNAPSHOT WRITER
=============================================================================

Writes whole-database snapshots to disk from a single background thread.

    request thread                        writer thread
    ──────────────                        ─────────────
    db.insert(...)
      └─ serialize under lock
      └─ writer.submit(text) ──► queue ──► write text to  db.json.tmp
    return 201 immediately                 os.replace(db.json.tmp, db.json)

Snapshots are written in submission order, one full file each time, so
the last snapshot submitted is what ends up on disk. os.replace() is
atomic on POSIX and Windows: a reader sees the old file or the new one,
never half of each. There is no fsync, so a power cut can still lose the
most recent writes.

Write errors (disk full, permissions) are logged and swallowed. The
in-memory database stays authoritative, and the next successful
snapshot repairs the file.

=============================================================================
"""

import logging
import os
import queue
import threading
import time
from typing import Optional


logger = logging.getLogger(__name__)


_STOP = object()


class SnapshotWriter:
    """
    Single-writer thread with a FIFO queue of serialized snapshots.

        writer = SnapshotWriter("db.json")
        writer.submit(json.dumps(tables))   # queued
        writer.write(json.dumps(tables))    # inline, returns success
        writer.flush()                      # wait for the queue to drain
        writer.close()
    """

    def __init__(self, path: str):
        self.path = os.fspath(path)
        self.writes_completed = 0
        self.writes_failed = 0

        self._queue: "queue.Queue[object]" = queue.Queue()
        # Serializes file writes between the thread and inline write() calls.
        self._write_lock = threading.Lock()
        # Guards _closed against submit/close races.
        self._state_lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(
            target=self._run,
            name="SnapshotWriter",
            daemon=True,
        )
        self._thread.start()

    @property
    def pending(self) -> int:
        """Snapshots queued or being written."""
        return self._queue.unfinished_tasks

    def submit(self, text: str) -> None:
        """Queue a snapshot. Written inline once the writer is closed."""
        with self._state_lock:
            if not self._closed:
                self._queue.put(text)
                return
        logger.debug("Snapshot writer closed, writing inline")
        self.write(text)

    def write(self, text: str) -> bool:
        """
        Write a snapshot now, on the calling thread.

        Returns:
            True on success. Failures are logged, never raised.
        """
        with self._write_lock:
            return self._write_file(text)

    def _write_file(self, text: str) -> bool:
        tmp_path = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_path, self.path)

        except OSError as e:
            self.writes_failed += 1
            logger.error(f"Failed to write snapshot to {self.path}: {e}")
            return False

        self.writes_completed += 1
        return True

    def _run(self):
        logger.debug(f"Snapshot writer started for {self.path}")

        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    break
                with self._write_lock:
                    self._write_file(item)
            finally:
                self._queue.task_done()

        logger.debug("Snapshot writer stopped")

    def flush(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every queued snapshot has been written.

        Returns:
            False if the timeout expired first.
        """
        deadline = time.time() + timeout if timeout is not None else None

        while self._queue.unfinished_tasks:
            if deadline is not None and time.time() > deadline:
                return False
            time.sleep(0.01)
        return True

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain the queue and stop the thread. Idempotent."""
        if self._closed:
            return

        if not self.flush(timeout):
            logger.warning(
                f"Snapshot writer closed with {self.pending} snapshot(s) unwritten"
            )

        # Anything submitted before this point is queued ahead of _STOP.
        with self._state_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        self._thread.join(timeout)
