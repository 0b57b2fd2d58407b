"""
Background threads for the control connection: a loop that repeats a unit of work until
stopped, and a future for work handed to a thread of its own.
"""
import logging
import threading
from concurrent.futures import Future
from typing import Callable

logger = logging.getLogger(__name__)


class FutureValue(Future):
    """
    The eventual outcome of work running on another thread. value() blocks until
    the work returns, and re-raises what it raised.
    """

    def value(self, timeout=None):
        return self.result(timeout)


def run_as_future(fn: Callable, *args, name=None) -> FutureValue:
    """
    Calls fn(*args) on a new daemon thread.
    :return: a FutureValue completed with what fn returns or raises.
    """
    future = FutureValue()

    def call():
        if future.set_running_or_notify_cancel():
            try:
                outcome = fn(*args)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(outcome)

    threading.Thread(target=call, name=name, daemon=True).start()
    return future


class AsyncLoop:
    """
    Repeats loop() on a daemon thread until stop() is called.

    Subclasses override loop(), and optionally startup() and shutdown(), which run once
    on the thread before and after the repetitions. Alternatively, pass fn and args to
    repeat a plain function. An exception escaping any of these is passed to
    exception_handler() and the loop carries on.

    A loop runs at most once. It cannot be restarted after stop().
    """

    def __init__(self, fn: Callable=None, args=(), log=logger, name=None):
        self.fn = fn
        self.args = args
        self.name = name
        self.logger = log
        self.stop_event = threading.Event()
        self.background_thread = None
        self._start_lock = threading.Lock()

    def start(self):
        with self._start_lock:
            if self.background_thread is not None or self.stop_event.is_set():
                return
            self.background_thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self.background_thread.start()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        self._guarded(self.startup)
        while self.running():
            self._guarded(self.loop)
        self._guarded(self.shutdown)
        self.logger.debug("background thread %s exiting" % self.name)

    def _guarded(self, step):
        try:
            step()
        except Exception as e:
            self.exception_handler(e)

    def startup(self):
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        pass

    def running(self):
        return not self.stop_event.is_set()

    def stop(self, wait=True):
        """
        Asks the loop to finish. With wait, blocks until the thread has exited, unless
        called from that thread.
        """
        self.stop_event.set()
        with self._start_lock:
            thread = self.background_thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()

    def join(self, timeout=None):
        if self.background_thread is not None:
            self.background_thread.join(timeout)
