#!/usr/bin/env python3
"""
Cooperative Cancellation

A single cancellation flag set from SIGINT/SIGTERM and polled by the crawl,
classification and relocation loops at their safe points. The same lock
guards the flag and checkpoint saves, so a save never observes a half-made
cancel decision.

The signal handler touches nothing but the flag; the application reports the
request once a loop notices it.
"""

import signal
import sys
import threading


class CancellationController:
    """Lock-guarded cancellation flag"""

    def __init__(self):
        # Signal handlers run on the main thread, possibly while it holds the lock
        self.lock = threading.RLock()
        self._cancelled = False

    def cancel(self):
        with self.lock:
            self._cancelled = True

    def is_cancelled(self) -> bool:
        with self.lock:
            return self._cancelled

    def install_signal_handlers(self):
        """Route SIGINT (and SIGTERM where available) to this controller"""
        signal.signal(signal.SIGINT, self._signal_handler)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        # Second interrupt: force quit
        if self.is_cancelled():
            sys.exit(1)
        self.cancel()
