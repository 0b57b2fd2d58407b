"""
Pluggable policies consumed by the control connection:

- ReconnectionPolicy: the delays between attempts to re-establish the control connection
- AddressTranslator: maps the addresses advertised by nodes to addresses the client can reach
- LoadBalancingPolicy: orders the known hosts into a plan of hosts to try
"""
import itertools
import threading

from clustercontrol.endpoint import Endpoint


class ReconnectionPolicy:
    """
    Governs how frequently an attempt is made to reconnect after the connection is lost.
    """

    def new_schedule(self):
        """
        Returns a fresh, possibly infinite, iterator of delays in seconds.
        Each failure episode uses a new schedule.
        """
        raise NotImplementedError()


class ConstantReconnectionPolicy(ReconnectionPolicy):
    """
    Waits a fixed delay between each reconnection attempt.

    :param delay    the number of seconds to wait between attempts
    :param max_attempts the number of delays in the schedule, at least 1, or None for an unending schedule
    """

    def __init__(self, delay, max_attempts=None):
        if delay < 0:
            raise ValueError("delay must not be negative")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.delay = delay
        self.max_attempts = max_attempts

    def new_schedule(self):
        if self.max_attempts is not None:
            return itertools.repeat(self.delay, self.max_attempts)
        return itertools.repeat(self.delay)


class ExponentialReconnectionPolicy(ReconnectionPolicy):
    """
    Doubles the delay after each attempt, up to max_delay.
    """

    def __init__(self, base_delay, max_delay, max_attempts=None):
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays may not be negative")
        if max_delay < base_delay:
            raise ValueError("max_delay must be greater than base_delay")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts

    def new_schedule(self):
        i, overflowed = 0, False
        while self.max_attempts is None or i < self.max_attempts:
            if overflowed:
                yield self.max_delay
            else:
                try:
                    yield min(self.base_delay * (2 ** i), self.max_delay)
                except OverflowError:
                    overflowed = True
                    yield self.max_delay
            i += 1


class AddressTranslator:
    """
    Translates the address advertised by a node into the endpoint the client connects to.
    Translation may block, for example to perform a DNS lookup.
    """

    def translate(self, address, port):
        """
        :return: the endpoint string to use for the node
        """
        raise NotImplementedError()


class IdentityTranslator(AddressTranslator):
    """
    Uses the address as advertised.

    >>> IdentityTranslator().translate('::1', 9042)
    '[::1]:9042'
    """

    def translate(self, address, port):
        return str(Endpoint(address, port))


class LoadBalancingPolicy:
    """
    Produces plans of hosts. The control connection uses the plan to choose the hosts to
    reconnect to.
    """

    def populate(self, hosts):
        """
        :param hosts: the HostMap of known hosts. The policy reads it as hosts are added.
        """
        raise NotImplementedError()

    def new_query_plan(self, keyspace=None, options=None):
        """
        :return: an iterator over the hosts to try, in order. May be empty.
        """
        raise NotImplementedError()


class RoundRobinPolicy(LoadBalancingPolicy):
    """
    Rotates through the hosts that are not marked down, starting one position further on for each plan.
    """

    def __init__(self):
        self._hosts = None
        self._position = 0
        self._lock = threading.Lock()

    def populate(self, hosts):
        self._hosts = hosts

    def new_query_plan(self, keyspace=None, options=None):
        hosts = [h for h in (self._hosts.values() if self._hosts is not None else ())
                 if h.is_up is not False]
        if not hosts:
            return iter(())
        with self._lock:
            start = self._position % len(hosts)
            self._position += 1
        return itertools.islice(itertools.cycle(hosts), start, start + len(hosts))
