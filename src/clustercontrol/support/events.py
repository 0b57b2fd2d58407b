"""
Notification of events to registered handlers. Handlers are plain callables receiving the event.
"""
import threading
from queue import Empty, Queue


class Subscription:
    """
    Returned by EventSource.subscribe(). cancel() detaches the handler, after which
    it receives no further events. Cancelling twice is harmless.
    """

    def __init__(self, source, handler):
        self.source = source
        self.handler = handler
        self._cancelled = False

    @property
    def cancelled(self):
        return self._cancelled

    def cancel(self):
        if not self._cancelled:
            self._cancelled = True
            self.source.remove(self.handler)


class EventSource:
    """
    Holds handlers and calls each of them, in registration order, for every fired event.
    Handlers may be added or removed from any thread, including from within a handler.
    """

    def __init__(self):
        self._handlers = []
        self._lock = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        with self._lock:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)
        return self

    def subscribe(self, handler) -> Subscription:
        self.add(handler)
        return Subscription(self, handler)

    def handlers(self):
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def fire_all(self, events):
        self._fire_all(events)

    def _fire_all(self, events):
        for e in events:
            self._fire(e)

    def _fire(self, *args, **kwargs):
        for handler in self.handlers():
            handler(*args, **kwargs)


class QueuedEventSource(EventSource):
    """
    Defers delivery: fire() and fire_all() only enqueue, and the events reach the handlers
    on whichever thread next calls publish().
    """

    def __init__(self):
        super().__init__()
        self.event_queue = Queue()

    def fire(self, *events):
        self.fire_all(events)

    def fire_all(self, events):
        for e in events:
            self.event_queue.put(e)

    def publish(self):
        pending = []
        while True:
            try:
                pending.append(self.event_queue.get_nowait())
            except Empty:
                break
        if pending:
            self._fire_all(pending)
