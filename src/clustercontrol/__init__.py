"""

Cluster Control Connection

- ControlConnection: keeps a single connection to one node of the cluster, used to read the
  cluster topology. Established from the contact points and re-established in the background
  when lost.
- contact points - the names or addresses given by the user to first reach the cluster.
    ContactPointResolver turns each into endpoints, looking up IPv4 and IPv6 records for names.
- Endpoint: an address and port. The string form brackets IPv6 addresses, e.g. [::1]:9042
- topology - read from the system.local and system.peers tables of the connected node.
    PeerInfoIngester creates a Host for each node in the HostMap shared with the rest of the client.
- policies
 - ReconnectionPolicy: the delays between reconnection attempts (constant or exponential)
 - LoadBalancingPolicy: plans the known hosts tried first when reconnecting
 - AddressTranslator: maps the addresses advertised by peers to reachable endpoints
- ConnectionProvider: opens the connections. The wire protocol lives behind this interface.


## Threading

init() blocks the calling thread until a connection is established or every candidate failed.
init_async() runs it on a background thread and returns a FutureValue.

Reconnection runs on a ReconnectionScheduler thread. Host events are queued and delivered
on the thread that calls ControlConnection.publish_events().

"""
