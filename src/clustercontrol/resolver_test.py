import socket
import unittest
from unittest.mock import AsyncMock, Mock, patch

import aiodns
from hamcrest import assert_that, is_, contains_exactly, empty, calling, raises, has_entries

from clustercontrol.endpoint import Endpoint
from clustercontrol.errors import ConfigurationError
from clustercontrol.resolver import ContactPointResolver, DnsResolver, Resolver


class FakeResolver(Resolver):
    """
    Answers lookups from dictionaries. Names missing from a dictionary fail that lookup.
    """

    def __init__(self, ipv4=None, ipv6=None, addresses=None):
        self.ipv4 = ipv4 or {}
        self.ipv6 = ipv6 or {}
        self.addresses = addresses or {}
        self.lookups = []

    def resolve4(self, name):
        self.lookups.append(('A', name))
        return self._answer(self.ipv4, name)

    def resolve6(self, name):
        self.lookups.append(('AAAA', name))
        return self._answer(self.ipv6, name)

    def lookup(self, name):
        self.lookups.append(('lookup', name))
        return self._answer(self.addresses, name)

    @staticmethod
    def _answer(records, name):
        if name not in records:
            raise OSError("ENOTFOUND %s" % name)
        return records[name]


class ContactPointResolverTest(unittest.TestCase):

    def test_ip_literals_resolve_to_themselves(self):
        resolver = FakeResolver()
        sut = ContactPointResolver(resolver)
        resolved = sut.resolve_all(['10.0.0.1', '::1', '[::2]:9043'])
        assert_that(list(resolved.keys()), contains_exactly('10.0.0.1', '::1', '[::2]:9043'))
        assert_that(resolved['10.0.0.1'], contains_exactly(Endpoint('10.0.0.1', 9042)))
        assert_that(resolved['::1'], contains_exactly(Endpoint('::1', 9042)))
        assert_that(resolved['[::2]:9043'], contains_exactly(Endpoint('::2', 9043)))
        assert_that(resolver.lookups, is_(empty()))

    def test_name_resolves_ipv4_and_ipv6(self):
        resolver = FakeResolver(ipv4={'node': ['10.0.0.1', '10.0.0.2']}, ipv6={'node': ['2001:db8::1']})
        sut = ContactPointResolver(resolver, default_port=9000)
        assert_that(sut.resolve('node'), contains_exactly(
            Endpoint('10.0.0.1', 9000), Endpoint('10.0.0.2', 9000), Endpoint('2001:db8::1', 9000)))
        assert_that(('lookup', 'node') in resolver.lookups, is_(False))

    def test_name_with_port(self):
        sut = ContactPointResolver(FakeResolver(ipv4={'node': ['10.0.0.1']}))
        assert_that(sut.resolve('node:9999'), contains_exactly(Endpoint('10.0.0.1', 9999)))

    def test_failed_ipv4_lookup_uses_ipv6(self):
        sut = ContactPointResolver(FakeResolver(ipv6={'node': ['2001:db8::1', '2001:db8::2']}))
        assert_that(sut.resolve('node'), contains_exactly(Endpoint('2001:db8::1'), Endpoint('2001:db8::2')))

    def test_falls_back_to_lookup(self):
        resolver = FakeResolver(ipv4={'node': []}, addresses={'node': '10.0.0.7'})
        sut = ContactPointResolver(resolver)
        assert_that(sut.resolve('node'), contains_exactly(Endpoint('10.0.0.7')))
        assert_that(resolver.lookups[-1], is_(('lookup', 'node')))

    def test_unresolvable_name(self):
        sut = ContactPointResolver(FakeResolver(ipv4={'good': ['10.0.0.1']}))
        resolved = sut.resolve_all(['bad', 'good'])
        assert_that(resolved['bad'], is_(empty()))
        assert_that(resolved['good'], contains_exactly(Endpoint('10.0.0.1')))
        assert_that(sut.unresolved, contains_exactly('bad'))

    def test_duplicate_addresses_removed(self):
        sut = ContactPointResolver(FakeResolver(ipv4={'node': ['10.0.0.1', '10.0.0.1']}))
        assert_that(sut.resolve('node'), contains_exactly(Endpoint('10.0.0.1')))

    def test_invalid_contact_point(self):
        sut = ContactPointResolver(FakeResolver())
        assert_that(calling(sut.resolve_all).with_args(['node:notaport']), raises(ConfigurationError))

    def test_diagnostic_map(self):
        resolved = ContactPointResolver(FakeResolver()).resolve_all(['::1', '10.0.0.1'])
        assert_that(ContactPointResolver.diagnostic_map(resolved),
                    has_entries({'::1': ['[::1]:9042'], '10.0.0.1': ['10.0.0.1:9042']}))

    def test_default_resolver(self):
        assert_that(isinstance(ContactPointResolver().resolver, DnsResolver), is_(True))


def dns_records(*hosts):
    return [Mock(host=h, ttl=300) for h in hosts]


@patch('clustercontrol.resolver.aiodns.DNSResolver')
class DnsResolverTest(unittest.TestCase):

    def test_resolve4_queries_a_records(self, dns_resolver):
        dns_resolver.return_value.query = AsyncMock(return_value=dns_records('10.0.0.1', '10.0.0.1', '10.0.0.2'))
        assert_that(DnsResolver().resolve4('node'), is_(['10.0.0.1', '10.0.0.2']))
        dns_resolver.return_value.query.assert_awaited_once_with('node', 'A')

    def test_resolve6_queries_aaaa_records(self, dns_resolver):
        dns_resolver.return_value.query = AsyncMock(return_value=dns_records('2001:db8::1'))
        assert_that(DnsResolver(nameservers=['10.0.0.53']).resolve6('node'), is_(['2001:db8::1']))
        dns_resolver.return_value.query.assert_awaited_once_with('node', 'AAAA')
        dns_resolver.assert_called_once_with(nameservers=['10.0.0.53'])

    def test_query_failure_propagates(self, dns_resolver):
        dns_resolver.return_value.query = AsyncMock(side_effect=aiodns.error.DNSError(4, "Domain name not found"))
        assert_that(calling(DnsResolver().resolve4).with_args('node'), raises(aiodns.error.DNSError))

    @patch('clustercontrol.resolver.socket.getaddrinfo')
    def test_lookup_uses_operating_system(self, getaddrinfo, dns_resolver):
        getaddrinfo.return_value = [(socket.AF_INET, socket.SOCK_STREAM, 6, '', ('10.0.0.3', 0))]
        assert_that(DnsResolver().lookup('node'), is_('10.0.0.3'))
        getaddrinfo.assert_called_once_with('node', None, socket.AF_UNSPEC, socket.SOCK_STREAM)
        dns_resolver.assert_not_called()

    @patch('clustercontrol.resolver.socket.getaddrinfo')
    def test_lookup_failure_propagates(self, getaddrinfo, dns_resolver):
        getaddrinfo.side_effect = socket.gaierror("not found")
        assert_that(calling(DnsResolver().lookup).with_args('node'), raises(socket.gaierror))

    @patch('clustercontrol.resolver.socket.getaddrinfo')
    def test_name_only_in_hosts_file_resolved_by_fallback(self, getaddrinfo, dns_resolver):
        dns_resolver.return_value.query = AsyncMock(side_effect=aiodns.error.DNSError(4, "Domain name not found"))
        getaddrinfo.return_value = [(socket.AF_INET, socket.SOCK_STREAM, 6, '', ('10.0.0.3', 0))]
        sut = ContactPointResolver(DnsResolver())
        assert_that(sut.resolve('node'), contains_exactly(Endpoint('10.0.0.3', 9042)))
        assert_that(dns_resolver.return_value.query.await_count, is_(2))
        assert_that(sut.unresolved, is_(empty()))


class ResolverFailureTest(unittest.TestCase):

    def test_failed_lookup_ignored_by_contact_point_resolver(self):
        resolver = Mock(spec=Resolver)
        resolver.resolve4.side_effect = socket.gaierror("not found")
        resolver.resolve6.side_effect = socket.gaierror("not found")
        resolver.lookup.return_value = None
        sut = ContactPointResolver(resolver)
        assert_that(sut.resolve('node'), is_(empty()))
        resolver.lookup.assert_called_once_with('node')
