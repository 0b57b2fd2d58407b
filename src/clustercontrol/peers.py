"""
Reads the cluster topology from the rows of the local and peers system tables into Host records.
"""
import ipaddress
import logging

from clustercontrol.endpoint import DEFAULT_PORT, Endpoint
from clustercontrol.errors import ConfigurationError
from clustercontrol.host import HostAddedEvent, HostMap
from clustercontrol.policies import AddressTranslator, IdentityTranslator

logger = logging.getLogger(__name__)


def _is_unspecified(address):
    """
    >>> _is_unspecified('0.0.0.0')
    True
    >>> _is_unspecified('::')
    True
    >>> _is_unspecified('10.0.0.1')
    False
    """
    try:
        return ipaddress.ip_address(address).is_unspecified
    except ValueError:
        return False


class PeerInfoIngester:
    """
    Creates and updates the hosts in a HostMap from topology rows.

    Hosts are only ever added here. Hosts missing from the rows are left in place.

    :param hosts    the HostMap to populate
    :param address_translator   translates the addresses advertised by peers
    :param local_datacenter the datacenter the client is configured for, or None. When given,
        at least one host must be in this datacenter.
    :param events   receives HostAddedEvent for hosts discovered after the initial ingestion.
        Should support fire(...)
    """

    def __init__(self, hosts: HostMap, address_translator: AddressTranslator=None, local_datacenter=None,
                 events=None, log=logger):
        self.hosts = hosts
        self.address_translator = address_translator or IdentityTranslator()
        self.local_datacenter = local_datacenter
        self.events = events
        self.logger = log

    def address_for_peer(self, row, default_port=DEFAULT_PORT):
        """
        Determines the endpoint string for a peer row.

        The rpc_address is used, unless it is the unspecified address, meaning the peer listens on
        all interfaces, in which case the peer column is used. The address is passed through the
        address translator.
        :return: the translated endpoint string, or None if the row has no rpc_address.
        """
        rpc_address = row.get('rpc_address')
        if rpc_address is None:
            return None
        address = str(rpc_address)
        if _is_unspecified(address):
            peer = row.get('peer')
            if peer is None:
                return None
            address = str(peer)
        return self.address_translator.translate(address, default_port)

    def ingest(self, connected_endpoint, local_row, peer_rows, initial=True, default_port=DEFAULT_PORT,
               protocol_version=None):
        """
        Creates or updates hosts from the topology rows.

        :param connected_endpoint   the Endpoint of the node the rows were read from. The local row
            describes this node.
        :param local_row    the row of the local table, or None if the node returned no row. Without
            a local row the connected node is not registered here.
        :param peer_rows    the rows of the peers table
        :param initial  True when reading the topology for the first time on this connection. Hosts
            created otherwise are announced with HostAddedEvent.
        :return: the hosts described by the rows, the connected host first when there is a local row
        Raises ConfigurationError if a local datacenter is configured and no host is in it, or if the
        address translator returns a string that is not an endpoint.
        """
        ingested = []
        if connected_endpoint is not None and local_row is not None:
            host = self._add_host(connected_endpoint, local_row, initial)
            host.protocol_version = protocol_version
            ingested.append(host)

        for row in peer_rows or ():
            translated = self.address_for_peer(row, default_port)
            if translated is None:
                self.logger.warning("peer row without an rpc_address was ignored: %s" % (row.get('peer'),))
                continue
            try:
                endpoint = Endpoint.parse(translated, default_port)
            except ValueError as e:
                raise ConfigurationError("address translator returned '%s' for peer %s: %s"
                                         % (translated, row.get('peer'), e)) from e
            ingested.append(self._add_host(endpoint, row, initial))

        self.check_local_datacenter(ingested)
        return ingested

    def _add_host(self, endpoint, row, initial):
        host, created = self.hosts.add_or_get(endpoint)
        host.set_info(row.get('data_center'), row.get('release_version'))
        if created:
            self.logger.debug("host %s discovered in datacenter %s" % (host, host.datacenter))
            if not initial and self.events is not None:
                self.events.fire(HostAddedEvent(host))
        return host

    def check_local_datacenter(self, hosts):
        """
        Raises ConfigurationError if a local datacenter is configured and none of the hosts is in it.
        """
        if self.local_datacenter is None:
            return
        datacenters = {h.datacenter for h in hosts}
        if self.local_datacenter not in datacenters:
            raise ConfigurationError("local datacenter '%s' was not found among the hosts. Available datacenters: %s"
                                     % (self.local_datacenter, ", ".join(sorted(str(dc) for dc in datacenters))))
