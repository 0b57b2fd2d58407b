"""
Resolves the contact points given by the user into endpoints.

A contact point is either an IP literal, which resolves to itself, or a hostname. Hostnames are
resolved with separate A and AAAA queries, falling back to the operating system's address
lookup when neither yields an address. A contact point that cannot be resolved yields no endpoints.
"""
import asyncio
import logging
import socket
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor

import aiodns

from clustercontrol.endpoint import DEFAULT_PORT, Endpoint, is_ip_literal, split_contact_point
from clustercontrol.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Resolver:
    """
    The DNS lookups used to resolve contact points. Each method may raise an exception when
    the lookup fails.
    """

    def resolve4(self, name):
        """ :return: the IPv4 addresses (A records) for the name """
        raise NotImplementedError

    def resolve6(self, name):
        """ :return: the IPv6 addresses (AAAA records) for the name """
        raise NotImplementedError

    def lookup(self, name):
        """ :return: a single address for the name, as resolved by the operating system """
        raise NotImplementedError


class DnsResolver(Resolver):
    """
    Queries A and AAAA records with aiodns. The fallback lookup goes through the operating system
    with socket.getaddrinfo(), so names known only to the hosts file or other local sources still resolve.

    Each query runs its own event loop on the calling thread, so the methods may be called from
    several threads at once.

    :param nameservers  the DNS servers to query, or None for the system's configuration
    :param timeout  the seconds to wait for an answer to one query
    """

    def __init__(self, nameservers=None, timeout=5.0):
        self.nameservers = nameservers
        self.timeout = timeout

    def resolve4(self, name):
        return asyncio.run(self._query(name, 'A'))

    def resolve6(self, name):
        return asyncio.run(self._query(name, 'AAAA'))

    def lookup(self, name):
        infos = socket.getaddrinfo(name, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
        return infos[0][4][0] if infos else None

    async def _query(self, name, record_type):
        resolver = aiodns.DNSResolver(nameservers=self.nameservers)
        records = await asyncio.wait_for(resolver.query(name, record_type), timeout=self.timeout)
        return _unique(record.host for record in records)


def _unique(values):
    seen = set()
    result = []
    for v in values:
        if v not in seen:
            seen.add(v)
            result.append(v)
    return result


class ContactPointResolver:
    """
    Resolves contact points to endpoints, looking up several names concurrently.

    :param resolver  the Resolver used for hostnames. Defaults to a DnsResolver.
    :param default_port  the port used when a contact point does not specify one.
    :param max_workers  the number of lookups that may run at the same time.
    """

    def __init__(self, resolver: Resolver=None, default_port=DEFAULT_PORT, max_workers=4, log=logger):
        self.resolver = resolver or DnsResolver()
        self.default_port = default_port
        self.max_workers = max_workers
        self.unresolved = []
        self.logger = log

    def resolve(self, contact_point):
        """
        :return: the list of endpoints for a single contact point
        """
        return self.resolve_all([contact_point])[contact_point]

    def resolve_all(self, contact_points):
        """
        Resolves each contact point.
        :return: an OrderedDict from the contact point, in the order given, to its list of endpoints.
            Contact points that could not be resolved map to an empty list and are listed in unresolved.
        """
        parsed = OrderedDict()
        for contact_point in contact_points:
            try:
                parsed[contact_point] = split_contact_point(contact_point, self.default_port)
            except ValueError as e:
                raise ConfigurationError("invalid contact point '%s': %s" % (contact_point, e)) from e

        addresses = {}
        names = [cp for cp, (name, _) in parsed.items() if not is_ip_literal(name)]
        if names:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                lookups = {cp: (executor.submit(self._try_resolve, self.resolver.resolve4, parsed[cp][0], 'A'),
                                executor.submit(self._try_resolve, self.resolver.resolve6, parsed[cp][0], 'AAAA'))
                           for cp in names}
                for cp, (ipv4, ipv6) in lookups.items():
                    addresses[cp] = _unique(ipv4.result() + ipv6.result())
                fallbacks = {cp: executor.submit(self._try_lookup, parsed[cp][0])
                             for cp in names if not addresses[cp]}
                for cp, lookup in fallbacks.items():
                    addresses[cp] = lookup.result()

        resolved = OrderedDict()
        self.unresolved = []
        for contact_point, (name, port) in parsed.items():
            found = [name] if contact_point not in addresses else addresses[contact_point]
            resolved[contact_point] = [Endpoint(address, port) for address in found]
            if not found:
                self.unresolved.append(contact_point)
                self.logger.warning("contact point '%s' could not be resolved" % contact_point)
            else:
                self.logger.debug("contact point '%s' resolved to %s" %
                                  (contact_point, ", ".join(str(e) for e in resolved[contact_point])))
        return resolved

    def _try_resolve(self, fn, name, record_type):
        try:
            return list(fn(name) or [])
        except Exception as e:
            self.logger.debug("%s lookup for '%s' failed: %s" % (record_type, name, e))
            return []

    def _try_lookup(self, name):
        try:
            address = self.resolver.lookup(name)
        except Exception as e:
            self.logger.debug("address lookup for '%s' failed: %s" % (name, e))
            return []
        return [address] if address else []

    @staticmethod
    def diagnostic_map(resolved):
        """
        Renders resolved endpoints for display, with IPv6 addresses bracketed.

        >>> dict(ContactPointResolver.diagnostic_map({'::1': [Endpoint('::1', 9042)]}))
        {'::1': ['[::1]:9042']}
        """
        return OrderedDict((name, [str(e) for e in endpoints]) for name, endpoints in resolved.items())
