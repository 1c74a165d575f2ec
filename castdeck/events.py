import logging
import threading

logger = logging.getLogger("CastDeck")


class Signal:
    """Synchronous callback list, dispatched in registration order."""

    def __init__(self, name):
        self.name = name
        self._listeners = []
        self._lock = threading.Lock()

    def connect(self, callback):
        with self._lock:
            if callback not in self._listeners:
                self._listeners.append(callback)
        return callback

    def disconnect(self, callback):
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def emit(self, *args, **kwargs):
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(*args, **kwargs)
            except Exception as e:
                logger.error(f"Listener for {self.name} failed: {e}")

    def __len__(self):
        with self._lock:
            return len(self._listeners)
