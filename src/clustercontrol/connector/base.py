import logging
import threading
from abc import abstractmethod

from clustercontrol.support.events import EventSource

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """ Indicates an error condition with a connection. """


class ConnectionNotConnectedError(ConnectorError):
    """ Indicates a connection is closed when an open connection is required. """


class ConnectionEvent:
    """ base class for connection events. """
    def __init__(self, connection):
        self.connection = connection


class ConnectionClosedEvent(ConnectionEvent):
    """ The connection transport was closed, either locally or by the remote end. """


class Connection:
    """
    A transport to a single cluster node, used to run queries against the system tables.

    Fires ConnectionClosedEvent on events when the transport closes.
    """

    def __init__(self):
        self.events = EventSource()

    @property
    @abstractmethod
    def endpoint(self):
        """ the Endpoint this connection is connected to. """
        raise NotImplementedError

    @property
    @abstractmethod
    def protocol_version(self):
        """ the protocol version negotiated with the node. """
        raise NotImplementedError

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def query(self, statement):
        """
        Runs a query and waits for the result.
        :return: a list of rows, each a mapping from column name to value.
        Raises an exception if the query fails.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self):
        raise NotImplementedError


class AbstractConnection(Connection):
    """
    Manages the closed state of a connection so that ConnectionClosedEvent is fired at most once,
    whether the connection is closed by the client or lost by the transport.
    """

    def __init__(self, endpoint, protocol_version=None):
        super().__init__()
        self._endpoint = endpoint
        self._protocol_version = protocol_version
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def endpoint(self):
        return self._endpoint

    @property
    def protocol_version(self):
        return self._protocol_version

    @property
    def connected(self):
        return not self._closed

    def query(self, statement):
        self.check_connected()
        return self._query(statement)

    def close(self):
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._close()
        finally:
            logger.debug("connection to %s closed" % self._endpoint)
            self.events.fire(ConnectionClosedEvent(self))

    def check_connected(self):
        if self._closed:
            raise ConnectionNotConnectedError("connection to %s is closed" % self._endpoint)

    @abstractmethod
    def _query(self, statement):
        """ Template method for subclasses to run the query on the transport. """
        raise NotImplementedError

    @abstractmethod
    def _close(self):
        """ Template method for subclasses to release the transport. """
        raise NotImplementedError


class ConnectionProvider:
    """
    Opens connections for the control connection. New connections are created for endpoints, while
    connections to known hosts may be borrowed from a pool.
    """

    @abstractmethod
    def create_connection(self, endpoint) -> Connection:
        """
        Opens a new connection to the endpoint.
        Raises an exception if the connection cannot be established.
        """
        raise NotImplementedError

    def borrow_connection(self, host) -> Connection:
        """
        Obtains a connection to a known host.
        This implementation opens a new connection to the host endpoint.
        """
        return self.create_connection(host.endpoint)


class FactoryConnectionProvider(ConnectionProvider):
    """
    Creates connections by calling a factory with the endpoint.
    Errors other than ConnectorError are wrapped in a ConnectorError.
    """

    def __init__(self, factory):
        self._factory = factory

    def create_connection(self, endpoint) -> Connection:
        try:
            return self._factory(endpoint)
        except ConnectorError:
            raise
        except Exception as e:
            raise ConnectorError("unable to connect to %s: %s" % (endpoint, e)) from e
