"""
Endpoints are the resolved address and port pairs that the control connection tries to connect to.
"""
import ipaddress

DEFAULT_PORT = 9042


def is_ip_literal(text):
    """
    >>> is_ip_literal('10.0.0.1')
    True
    >>> is_ip_literal('::1')
    True
    >>> is_ip_literal('localhost')
    False
    """
    try:
        ipaddress.ip_address(text)
        return True
    except ValueError:
        return False


def is_ipv6_literal(text):
    try:
        return ipaddress.ip_address(text).version == 6
    except ValueError:
        return False


def _parse_port(text):
    port = int(text)
    if not 0 < port < 65536:
        raise ValueError("port out of range: %s" % text)
    return port


def split_contact_point(text, default_port=DEFAULT_PORT):
    """
    Splits a contact point into the name or address and the port.
    IPv6 literals are only given a port when bracketed.

    >>> split_contact_point('localhost:9999')
    ('localhost', 9999)
    >>> split_contact_point('10.1.1.1')
    ('10.1.1.1', 9042)
    >>> split_contact_point('::1')
    ('::1', 9042)
    >>> split_contact_point('[::1]:9043')
    ('::1', 9043)
    """
    text = text.strip()
    if not text:
        raise ValueError("empty contact point")
    if text.startswith('['):
        close = text.find(']')
        if close < 0:
            raise ValueError("unterminated bracket in '%s'" % text)
        address = text[1:close]
        rest = text[close + 1:]
        if not rest:
            return address, default_port
        if not rest.startswith(':'):
            raise ValueError("unexpected text after address in '%s'" % text)
        return address, _parse_port(rest[1:])
    if is_ip_literal(text):
        return text, default_port
    if text.count(':') == 1:
        name, port = text.split(':')
        return name, _parse_port(port)
    return text, default_port


class Endpoint:
    """
    An immutable address and port.

    The string form is the canonical rendering used for diagnostics and as the key of a host,
    with IPv6 addresses bracketed. host_port is the unbracketed form.
    """

    __slots__ = ('_address', '_port')

    def __init__(self, address, port=DEFAULT_PORT):
        if address is None:
            raise ValueError("address may not be None")
        object.__setattr__(self, '_address', str(address))
        object.__setattr__(self, '_port', int(port))

    def __setattr__(self, key, value):
        raise AttributeError("Endpoint is immutable")

    @property
    def address(self):
        return self._address

    @property
    def port(self):
        return self._port

    @property
    def is_ipv6(self):
        return is_ipv6_literal(self._address)

    @property
    def host_port(self):
        """
        >>> Endpoint('::1', 9042).host_port
        '::1:9042'
        """
        return "%s:%d" % (self._address, self._port)

    @classmethod
    def parse(cls, text, default_port=DEFAULT_PORT):
        """
        Parses an endpoint string in either rendering: the canonical form, or host_port.

        Without brackets, text holding more than one colon is an IPv6 address followed by
        :port, so that host_port always parses back to the same endpoint. An IPv6 address
        without a port must be bracketed. Text that fits neither form raises ValueError.

        >>> Endpoint.parse('[::1]:9042') == Endpoint('::1', 9042)
        True
        >>> Endpoint.parse('2001:db8::5:9042') == Endpoint('2001:db8::5', 9042)
        True
        >>> Endpoint.parse('1.2.3.4') == Endpoint('1.2.3.4', 9042)
        True
        """
        if isinstance(text, Endpoint):
            return text
        text = str(text).strip()
        if text.startswith('[') or text.count(':') < 2:
            return cls(*split_contact_point(text, default_port))
        address, _, port = text.rpartition(':')
        if not is_ipv6_literal(address):
            raise ValueError("'%s' is neither a bracketed IPv6 address nor an IPv6 address and port" % text)
        return cls(address, _parse_port(port))

    def __eq__(self, other):
        return isinstance(other, Endpoint) and (self._address, self._port) == (other._address, other._port)

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((self._address, self._port))

    def __lt__(self, other):
        return (self._address, self._port) < (other._address, other._port)

    def __str__(self):
        """
        >>> str(Endpoint('::1', 9042))
        '[::1]:9042'
        >>> str(Endpoint('127.0.0.1', 9042))
        '127.0.0.1:9042'
        """
        if ':' in self._address:
            return "[%s]:%d" % (self._address, self._port)
        return self.host_port

    def __repr__(self):
        return "<Endpoint: %s>" % self
