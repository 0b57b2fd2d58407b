"""
Hosts are the cluster nodes known to the control connection, keyed by their canonical endpoint string.
"""
import logging
import threading
from collections import OrderedDict

from clustercontrol.endpoint import Endpoint
from clustercontrol.support.events import EventSource
from clustercontrol.support.mixins import ValueEqualityMixin

logger = logging.getLogger(__name__)


class HostEvent(ValueEqualityMixin):
    """ base class for host notifications. """
    def __init__(self, host):
        self.host = host


class HostUpEvent(HostEvent):
    """ The host was marked up. """


class HostDownEvent(HostEvent):
    """ The host was marked down. """


class HostAddedEvent(HostEvent):
    """ The host was discovered after the initial topology was read. """


class Host:
    """
    A single node of the cluster.

    is_up is None until the state of the node is known.
    """

    def __init__(self, endpoint: Endpoint, datacenter=None, release_version=None):
        if endpoint is None:
            raise ValueError("endpoint may not be None")
        self.endpoint = endpoint
        self.datacenter = datacenter
        self.release_version = release_version
        self.protocol_version = None
        self.is_up = None
        self.events = EventSource()
        self.lock = threading.RLock()

    @property
    def address(self):
        return self.endpoint.address

    @property
    def port(self):
        return self.endpoint.port

    @property
    def key(self):
        return str(self.endpoint)

    def set_info(self, datacenter, release_version):
        """ updates the location and version, as read from the system tables. """
        with self.lock:
            self.datacenter = datacenter
            self.release_version = release_version

    def set_up(self):
        with self.lock:
            changed = self.is_up is not True
            self.is_up = True
        if changed:
            logger.debug("host %s is now marked up" % self)
            self.events.fire(HostUpEvent(self))

    def set_down(self):
        with self.lock:
            changed = self.is_up is not False
            self.is_up = False
        if changed:
            logger.debug("host %s is now marked down" % self)
            self.events.fire(HostDownEvent(self))

    def __eq__(self, other):
        return isinstance(other, Host) and self.endpoint == other.endpoint

    def __hash__(self):
        return hash(self.endpoint)

    def __str__(self):
        return str(self.endpoint)

    def __repr__(self):
        dc = (" %s" % self.datacenter) if self.datacenter else ""
        return "<%s: %s%s>" % (self.__class__.__name__, self.endpoint, dc)


class HostMap:
    """
    The hosts known to the control connection.

    Only the control connection adds hosts. Other components read the hosts concurrently and always
    receive a snapshot.
    """

    def __init__(self):
        self._hosts = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key, default=None):
        with self._lock:
            return self._hosts.get(str(key), default)

    def add_or_get(self, endpoint: Endpoint):
        """
        Retrieves the host for the endpoint, creating it if not already known.
        :return: a tuple of the host, and True if the host was created.
        """
        key = str(endpoint)
        with self._lock:
            host = self._hosts.get(key)
            if host is not None:
                return host, False
            host = self._hosts[key] = Host(endpoint)
            return host, True

    def remove(self, key):
        with self._lock:
            return self._hosts.pop(str(key), None)

    def clear(self):
        with self._lock:
            self._hosts.clear()

    def values(self):
        with self._lock:
            return list(self._hosts.values())

    def keys(self):
        with self._lock:
            return list(self._hosts.keys())

    def endpoints(self):
        return [h.endpoint for h in self.values()]

    def __contains__(self, key):
        with self._lock:
            return str(key) in self._hosts

    def __len__(self):
        with self._lock:
            return len(self._hosts)

    def __iter__(self):
        return iter(self.values())
