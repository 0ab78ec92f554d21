"""
Thread-based background runner for hierarchy builds.

Runs NavigationSession.build_hierarchy() off the host's UI thread. The
builder's yield hook gives other threads a turn at every recursion boundary
and after every masking pass, and interrupts the build once cancel() has
been requested.
"""

import logging
import threading
import time
from queue import Queue
from typing import Any, Dict, Optional

from hdlnav.services import BuildCancelledError

logger = logging.getLogger(__name__)


def _push_log(log_queue: Optional[Queue], message: str) -> None:
    """Push a timestamped message for the host to display."""
    if log_queue is not None:
        log_queue.put(f"[{time.strftime('%H:%M:%S')}] {message}")


class HierarchyBuildWorker:
    """
    Background hierarchy build for one session.

    Attributes:
        session (NavigationSession): Session with an opened catalog
        top (str): Top module to build
        log_queue (Queue): Optional queue receiving progress messages
        result_store (Dict): ``status`` ("pending", "running", "success",
            "cancelled" or "error: …"), ``outcome`` and ``elapsed``
    """

    def __init__(self, session, top: str, log_queue: Optional[Queue] = None):
        self.session = session
        self.top = top
        self.log_queue = log_queue
        self.result_store: Dict[str, Any] = {"status": "pending"}
        self.yields = 0

        self._cancel = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"hierarchy-build-{top}",
            daemon=True,
        )

    def start(self) -> "HierarchyBuildWorker":
        self.result_store["status"] = "running"
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next yield point."""
        self._cancel.set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Wait for the build and return the result store."""
        self._thread.join(timeout)
        return self.result_store

    def _yield_hook(self) -> None:
        self.yields += 1
        time.sleep(0)
        if self._cancel.is_set():
            raise BuildCancelledError(f"build of {self.top} cancelled")

    def _run(self) -> None:
        start_time = time.time()
        _push_log(self.log_queue, f"Building hierarchy for {self.top}")

        try:
            outcome = self.session.build_hierarchy(self.top, yield_hook=self._yield_hook)
        except Exception as e:
            self.result_store["status"] = f"error: {e}"
            logger.error("Background hierarchy build failed", exc_info=True)
            _push_log(self.log_queue, f"Hierarchy build failed: {e}")
            return
        finally:
            self.result_store["elapsed"] = time.time() - start_time

        self.result_store["outcome"] = outcome
        if not outcome.failed:
            self.result_store["status"] = "success"
        elif self._cancel.is_set():
            self.result_store["status"] = "cancelled"
        else:
            self.result_store["status"] = f"error: {outcome.message}"

        _push_log(self.log_queue, f"Hierarchy build {self.result_store['status']}: {outcome.message}")
