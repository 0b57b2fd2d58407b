"""
The control connection keeps a single connection to one node of the cluster, used to read the cluster
topology from the system tables.

The connection is first established from the contact points. Candidate endpoints are tried one at a
time, in random order, until one connects and returns the topology. When the connection is later lost,
a ReconnectionScheduler retries in the background, first through the known hosts planned by the load
balancing policy, and then through the contact points, until a new connection is established or the
control connection is shut down.
"""
import enum
import logging
import random
import threading
from collections import OrderedDict

from clustercontrol.connector.base import ConnectionClosedEvent, ConnectionProvider
from clustercontrol.errors import ConfigurationError, DriverError, DriverShutdownError, NoHostAvailableError
from clustercontrol.host import HostMap
from clustercontrol.options import ClientOptions
from clustercontrol.peers import PeerInfoIngester
from clustercontrol.reconnection import ReconnectionScheduler
from clustercontrol.resolver import ContactPointResolver, Resolver
from clustercontrol.support.async_loop import run_as_future
from clustercontrol.support.events import QueuedEventSource

logger = logging.getLogger(__name__)


class ControlConnectionState(enum.Enum):
    UNINITIALIZED = 'uninitialized'
    ACQUIRING = 'acquiring'
    INGESTING = 'ingesting'
    READY = 'ready'
    RECONNECTING = 'reconnecting'
    SHUT_DOWN = 'shut down'


class ControlConnection:
    """
    Maintains the connection used to discover the cluster topology.

    The hosts map is shared with other components, which may read it at any time. It is only
    written by the control connection, while a connection is being established or refreshed.

    Events are queued on events and delivered to handlers on the thread that calls publish_events():
    HostAddedEvent is posted for hosts discovered after the first topology read.

    :param options  the ClientOptions
    :param connections  a ConnectionProvider used to open connections to endpoints and borrow
        connections to known hosts
    :param resolver the Resolver used to look up contact point names. Defaults to a DnsResolver.
    """

    SELECT_LOCAL = "SELECT * FROM system.local WHERE key='local'"
    SELECT_PEERS = "SELECT * FROM system.peers"

    def __init__(self, options: ClientOptions, connections: ConnectionProvider, resolver: Resolver=None,
                 log=logger):
        self.options = options
        self.connections = connections
        self.logger = log
        self.hosts = HostMap()
        self.events = QueuedEventSource()
        self.contact_point_resolver = ContactPointResolver(resolver, options.port, options.resolver_workers, log)
        self.ingester = PeerInfoIngester(self.hosts, options.address_translator, options.local_datacenter,
                                         self.events, log)
        self.initialized = False
        self.state = ControlConnectionState.UNINITIALIZED
        self.host = None                    # the host of the active connection
        self.protocol_version = None
        self.cluster_name = None
        self._connection = None
        self._close_subscription = None
        self._resolved_contact_points = OrderedDict()
        self._reconnection = None
        self._is_shutdown = False
        self._lock = threading.RLock()          # guards the active connection and state
        self._acquire_lock = threading.Lock()   # one acquisition or refresh at a time
        options.load_balancing_policy.populate(self.hosts)

    @property
    def connection(self):
        """ the active connection, or None """
        return self._connection

    @property
    def is_shutdown(self):
        return self._is_shutdown

    @property
    def reconnecting(self):
        reconnection = self._reconnection
        return reconnection is not None and reconnection.is_active

    def get_resolved_contact_points(self):
        """
        :return: an OrderedDict from each contact point to the endpoint strings it resolved to,
            with IPv6 addresses bracketed.
        """
        return ContactPointResolver.diagnostic_map(self._resolved_contact_points)

    def get_address_for_peer_host(self, row, default_port=None):
        """
        :return: the endpoint string for a peers table row, or None if the row is unusable.
        """
        return self.ingester.address_for_peer(row, default_port or self.options.port)

    def init(self):
        """
        Establishes the connection and reads the cluster topology. Does nothing if already initialized.

        Raises NoHostAvailableError if no candidate endpoint could be used, ConfigurationError if the
        configured local datacenter is not in the cluster, and DriverShutdownError if shut down.
        """
        with self._acquire_lock:
            self._check_shutdown()
            if self.initialized:
                return
            self._set_state(ControlConnectionState.ACQUIRING)
            try:
                connection, host = self._acquire()
                self._adopt(connection, host)
            except Exception:
                with self._lock:
                    if not self._is_shutdown:
                        self._set_state(ControlConnectionState.UNINITIALIZED)
                raise
        self.logger.info("control connection established to %s" % host)

    def init_async(self):
        """
        Runs init() on a background thread.
        :return: a FutureValue that completes when init() returns or raises.
        """
        return run_as_future(self.init, name='control connection init')

    def refresh_hosts(self):
        """
        Reads the topology again through the active connection. Newly discovered hosts are announced with
        HostAddedEvent. If the refresh fails, the connection is closed and reconnection begins.
        :return: True if the topology was read
        """
        connection = self._connection
        if connection is None:
            return False
        try:
            with self._acquire_lock:
                self._refresh_topology(connection, initial=False)
        except Exception as e:
            self.logger.warning("error refreshing hosts through %s: %s" % (connection.endpoint, e))
            return False
        with self._lock:
            if self._connection is connection:
                self._set_state(ControlConnectionState.READY)
        return True

    def publish_events(self):
        """ delivers queued host events to the event handlers on the calling thread. """
        self.events.publish()

    def shutdown(self):
        """
        Closes the active connection and stops any reconnection. No reconnection attempt starts after
        this returns. Calling shutdown again has no effect.
        """
        with self._lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True
            self._set_state(ControlConnectionState.SHUT_DOWN)
            self._cancel_close_subscription()
            connection, self._connection = self._connection, None
            reconnection, self._reconnection = self._reconnection, None
        if reconnection is not None:
            reconnection.stop()
        if connection is not None:
            connection.close()
        self.logger.info("control connection shut down")

    def _set_state(self, state):
        if self._is_shutdown and state is not ControlConnectionState.SHUT_DOWN:
            return
        if self.state is not state:
            self.logger.debug("control connection %s -> %s" % (self.state.value, state.value))
            self.state = state

    def _check_shutdown(self):
        if self._is_shutdown:
            raise DriverShutdownError("the control connection is shut down")

    def _candidates(self):
        """
        Resolves the contact points and adds the known hosts.
        :return: the candidate endpoints in random order
        """
        resolved = self.contact_point_resolver.resolve_all(self.options.contact_points)
        self._resolved_contact_points = resolved
        candidates = []
        for endpoint in [e for endpoints in resolved.values() for e in endpoints] + self.hosts.endpoints():
            if endpoint not in candidates:
                candidates.append(endpoint)
        if not candidates:
            raise NoHostAvailableError("No contact point could be resolved (%s)" %
                                       ", ".join(self.contact_point_resolver.unresolved))
        random.shuffle(candidates)
        return candidates

    def _acquire(self):
        """
        Tries each candidate endpoint in turn until one connects and returns the topology.
        :return: the connection and its host
        """
        errors = OrderedDict()
        for endpoint in self._candidates():
            self._check_shutdown()
            self._set_state(ControlConnectionState.RECONNECTING if self.initialized
                            else ControlConnectionState.ACQUIRING)
            self.logger.debug("opening control connection to %s" % endpoint)
            try:
                connection = self.connections.create_connection(endpoint)
            except Exception as e:
                self._record_failure(errors, endpoint, e)
                continue
            try:
                return connection, self._refresh_topology(connection, initial=not self.initialized)
            except (ConfigurationError, DriverShutdownError):
                raise
            except Exception as e:
                self._record_failure(errors, endpoint, e)
        raise NoHostAvailableError("Unable to connect to any contact point", errors)

    def _record_failure(self, errors, endpoint, e):
        errors[str(endpoint)] = e
        self.logger.warning("error connecting control connection to %s: %s" % (endpoint, e))

    def _refresh_topology(self, connection, initial):
        """
        Reads the local and peers tables through the connection and ingests the rows.
        The connection is closed if this fails. A node that returns no local row is only usable
        when it is already a known host.
        :return: the host of the connection
        """
        try:
            self._check_shutdown()
            self._set_state(ControlConnectionState.INGESTING)
            local_rows = connection.query(self.SELECT_LOCAL)
            peer_rows = connection.query(self.SELECT_PEERS)
            local_row = local_rows[0] if local_rows else None
            with self._lock:
                hosts = self.ingester.ingest(connection.endpoint, local_row, peer_rows, initial=initial,
                                             default_port=self.options.port,
                                             protocol_version=connection.protocol_version)
                host = self.hosts.get(connection.endpoint)
                if host is None:
                    raise DriverError("%s returned no row from system.local" % connection.endpoint)
                if local_row is not None:
                    self.cluster_name = local_row.get('cluster_name', self.cluster_name)
        except Exception:
            connection.close()
            raise
        self.logger.debug("read %d hosts through %s" % (len(hosts), connection.endpoint))
        return host

    def _adopt(self, connection, host):
        """
        Makes the connection the active connection and listens for it to close.
        The previous connection, if any, is closed.
        """
        with self._lock:
            if self._is_shutdown:
                connection.close()
                raise DriverShutdownError("the control connection was shut down while connecting")
            self._cancel_close_subscription()
            previous, self._connection = self._connection, connection
            self._close_subscription = connection.events.subscribe(self._connection_event)
            self.host = host
            self.protocol_version = connection.protocol_version
            self.initialized = True
            self._set_state(ControlConnectionState.READY)
        host.set_up()
        if previous is not None and previous is not connection:
            previous.close()
        if not connection.connected:
            # closed before the listener was registered
            self._connection_lost(connection)

    def _cancel_close_subscription(self):
        subscription, self._close_subscription = self._close_subscription, None
        if subscription is not None:
            subscription.cancel()

    def _connection_event(self, event):
        if isinstance(event, ConnectionClosedEvent):
            self._connection_lost(event.connection)

    def _connection_lost(self, connection):
        with self._lock:
            if self._is_shutdown or connection is not self._connection:
                return
            self._cancel_close_subscription()
            self._connection = None
            host = self.host
            self._set_state(ControlConnectionState.RECONNECTING)
        self.logger.warning("control connection to %s was lost, reconnecting" % connection.endpoint)
        if host is not None:
            host.set_down()
        self._start_reconnection()

    def _start_reconnection(self):
        with self._lock:
            if self._is_shutdown or self.reconnecting:
                return
            self._reconnection = ReconnectionScheduler(self.options.reconnection_policy, self._reconnect,
                                                       self._reconnected, log=self.logger,
                                                       name='control connection reconnection')
            self._reconnection.start()

    def _reconnect(self):
        """
        Makes one reconnection attempt, trying the hosts of a new query plan and then the contact points
        and known hosts.
        :return: the new connection and its host
        """
        with self._acquire_lock:
            self._check_shutdown()
            errors = OrderedDict()
            for host in self.options.load_balancing_policy.new_query_plan(self.options.keyspace):
                self._check_shutdown()
                self._set_state(ControlConnectionState.RECONNECTING)
                try:
                    connection = self.connections.borrow_connection(host)
                except Exception as e:
                    self._record_failure(errors, host.endpoint, e)
                    continue
                try:
                    return connection, self._refresh_topology(connection, initial=False)
                except (ConfigurationError, DriverShutdownError):
                    raise
                except Exception as e:
                    self._record_failure(errors, host.endpoint, e)
            try:
                return self._acquire()
            except NoHostAvailableError as e:
                errors.update(e.errors)
                raise NoHostAvailableError("Unable to reconnect to any host", errors) from e

    def _reconnected(self, result):
        connection, host = result
        try:
            self._adopt(connection, host)
        except DriverShutdownError:
            self.logger.debug("reconnected to %s after shutdown, connection closed" % host)
            return
        self.logger.info("control connection re-established to %s" % host)
