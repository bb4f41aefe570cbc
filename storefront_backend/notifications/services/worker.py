# notifications/services/worker.py
"""
Delivery workers for the notification outbox.

- BackgroundWorker: one daemon thread draining an in-process queue of job ids.
  The HTTP request / webhook response never waits on the email provider.
- InlineWorker: delivers immediately in the calling thread (tests, scripts).

Both only ever receive job ids. The job row is the source of truth, so a
lost in-memory queue (process restart) is recovered by the
process_notifications command.
"""

from __future__ import annotations

import logging
import queue
import threading

from django.db import close_old_connections

logger = logging.getLogger(__name__)


class InlineWorker:
    def __init__(self, handler):
        self.handler = handler

    def submit(self, job_id) -> None:
        self.handler(job_id)


class BackgroundWorker:
    def __init__(self, handler, *, name: str = "notification-worker"):
        self.handler = handler
        self.name = name
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def _ensure_started(self) -> None:
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def submit(self, job_id) -> None:
        self._ensure_started()
        self._queue.put(job_id)

    def _run(self) -> None:
        while True:
            job_id = self._queue.get()
            try:
                close_old_connections()
                self.handler(job_id)
            except Exception:
                # The job stays in 'sending'; process_notifications requeues it.
                logger.exception("Notification worker crashed on job", extra={"job_id": str(job_id)})
            finally:
                close_old_connections()
                self._queue.task_done()
