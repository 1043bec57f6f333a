import functools
import threading
import time
import logging

logger = logging.getLogger(__name__)


class _Skipped:
    """Returned by a guarded call that fell inside an open throttle window."""

    def __repr__(self):
        return "SKIPPED"

    def __bool__(self):
        return False


SKIPPED = _Skipped()

GLOBAL_KEY = "__global__"


def _now_ms():
    return time.monotonic() * 1000


class ThrottleGate:
    """Rate-limit a side effect to at most one call per interval.

    Calls that arrive while the window is still open are dropped, not queued.
    With a ``key`` function every key gets its own window; without one the
    whole call site shares a single window.
    """

    def __init__(self, clock=None):
        self._clock = clock or _now_ms
        self._last = {}
        self._lock = threading.Lock()

    def wrap(self, action, interval_ms, key=None):
        @functools.wraps(action)
        def guarded(*args, **kwargs):
            window = key(*args, **kwargs) if key else GLOBAL_KEY
            now = self._clock()
            with self._lock:
                last = self._last.get(window)
                if last is not None and now - last < interval_ms:
                    logger.debug(f"Throttled call to {getattr(action, '__name__', action)} for {window}")
                    return SKIPPED
                # an expired window no longer blocks anything
                for stale in [k for k, t in self._last.items() if now - t >= interval_ms]:
                    del self._last[stale]
                self._last[window] = now
            return action(*args, **kwargs)

        guarded.gate = self
        return guarded

    def last_invocation(self, window=GLOBAL_KEY):
        with self._lock:
            return self._last.get(window)

    def reset(self):
        with self._lock:
            self._last.clear()
