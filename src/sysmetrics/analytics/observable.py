import threading
from typing import Callable, Generic, List, TypeVar

from sysmetrics.loggers.error_log import get_error_logger

T = TypeVar("T")


class Subscribers(Generic[T]):
    """
    Callback registry for published snapshots.

    `notify` is called by the owning component after its series lock is
    released. A failing callback is logged and skipped; it never reaches
    the caller that pushed the sample.
    """

    def __init__(self, owner: str):
        self.logger = get_error_logger(owner)
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def __len__(self) -> int:
        return len(self._callbacks)

    def notify(self, snapshot: T) -> None:
        if not self._callbacks:
            return
        with self._lock:
            callbacks = list(self._callbacks)
        for cb in callbacks:
            try:
                cb(snapshot)
            except Exception as e:
                self.logger.error(f"[SysMetrics] Subscriber {cb!r} failed: {e}")
