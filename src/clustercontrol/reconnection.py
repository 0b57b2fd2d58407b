import logging

from clustercontrol.policies import ReconnectionPolicy
from clustercontrol.support.async_loop import AsyncLoop

logger = logging.getLogger(__name__)


class ReconnectionScheduler(AsyncLoop):
    """
    Retries an operation on a background thread until it succeeds, waiting between attempts for the
    delays given by a reconnection policy.

    A new schedule is requested from the policy when the scheduler is started. Each scheduler handles a
    single failure episode: once the attempt succeeds the thread exits, and a later failure is handled
    by a new scheduler with a new schedule.

    There is no limit to the number of attempts. If the schedule runs out, the last delay is reused. A
    schedule that yields no delay at all waits fallback_delay between attempts.

    :param policy   the ReconnectionPolicy providing the delays
    :param attempt  a callable that performs one attempt. It returns a result on success and raises on failure.
    :param on_success   called with the attempt result after a successful attempt
    :param fallback_delay   the seconds to wait when the schedule is empty
    """

    def __init__(self, policy: ReconnectionPolicy, attempt, on_success=None, fallback_delay=1.0, log=logger,
                 name='reconnection'):
        super().__init__(log=log, name=name)
        self.policy = policy
        self.attempt = attempt
        self.on_success = on_success
        self.fallback_delay = fallback_delay
        self.schedule = None
        self.attempts = 0
        self.succeeded = False
        self._last_delay = None

    def start(self):
        """
        Obtains a new schedule and starts attempting on the background thread.
        """
        if self.schedule is None:
            self.schedule = iter(self.policy.new_schedule())
        super().start()

    @property
    def is_active(self):
        thread = self.background_thread
        return self.running() and thread is not None and thread.is_alive()

    def next_delay(self):
        try:
            self._last_delay = next(self.schedule)
        except StopIteration:
            if self._last_delay is None:
                self.logger.warning("reconnection schedule is empty, retrying every %s seconds" % self.fallback_delay)
                self._last_delay = self.fallback_delay
            else:
                self.logger.debug("reconnection schedule exhausted, retrying every %s seconds" % self._last_delay)
        return self._last_delay

    def loop(self):
        """
        waits for the next delay and then makes one attempt.
        """
        delay = self.next_delay()
        if self.stop_event.wait(delay):
            return
        self.attempts += 1
        try:
            result = self.attempt()
        except Exception as e:
            if self.logger.isEnabledFor(logging.DEBUG):
                self.logger.debug("%s attempt %d failed" % (self.name, self.attempts), exc_info=True)
            self.logger.warning("%s attempt %d failed: %s" % (self.name, self.attempts, e))
            return
        self.succeeded = True
        self.stop_event.set()
        self.logger.info("%s succeeded after %d attempts" % (self.name, self.attempts))
        if self.on_success:
            self.on_success(result)
