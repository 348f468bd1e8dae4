import logging
import threading

L = logging.getLogger("aoi_runtime.workers")


class BaseWorker:
    """Single-use daemon thread with a cooperative stop event.

    Subclasses implement `run()` and poll `self._stop_evt` once per iteration.
    """

    def __init__(self, name: str = ""):
        self.name = name or self.__class__.__name__
        self._stop_evt = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_error: Exception | None = None

    def start(self):
        if self._thread is not None:
            raise RuntimeError(
                f"{self.name} is single-use; start() may only be called once"
            )
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> bool:
        """Signal the worker and wait up to `timeout` seconds.

        Returns True if the thread exited, False if the wait was abandoned.
        """
        self._stop_evt.set()
        thread = self._thread
        if thread is None:
            return True
        if thread is threading.current_thread():
            return False
        thread.join(timeout=timeout)
        if thread.is_alive():
            L.warning("%s worker thread did not exit within %.2fs", self.name, timeout)
            return False
        return True

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True early if a stop was requested."""
        if seconds <= 0:
            return self._stop_evt.is_set()
        return self._stop_evt.wait(seconds)

    def _run(self):
        try:
            self.run()
        except Exception as e:
            self._last_error = e
            L.exception("%s worker error", self.name)

    @property
    def stop_requested(self) -> bool:
        return self._stop_evt.is_set()

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    def run(self):
        raise NotImplementedError


__all__ = ["BaseWorker"]
