import logging
import os

from clustercontrol.config.config import apply_conf, fetch_conf_path, load_config
from clustercontrol.endpoint import DEFAULT_PORT
from clustercontrol.policies import ConstantReconnectionPolicy, ExponentialReconnectionPolicy, IdentityTranslator, \
    RoundRobinPolicy
from clustercontrol.support.mixins import StringerMixin

logger = logging.getLogger(__name__)

config_name = 'clustercontrol'
schema_file = os.path.join(os.path.dirname(__file__), 'config', config_name + '.schema.cfg')


class ClientOptions(StringerMixin):
    """
    The settings used by the control connection.

    :param contact_points   the names or addresses used to first reach the cluster, each optionally
        followed by :port
    :param port the port used when a contact point or peer does not specify one
    :param local_datacenter the datacenter the client is in. When given, the cluster must have a node in it.
    :param keyspace the keyspace passed to the load balancing policy when planning reconnection
    """

    def __init__(self, contact_points=(), port=DEFAULT_PORT, local_datacenter=None, keyspace=None,
                 load_balancing_policy=None, reconnection_policy=None, address_translator=None,
                 resolver_workers=4):
        self.contact_points = list(contact_points)
        self.port = port
        self.local_datacenter = local_datacenter
        self.keyspace = keyspace
        self.load_balancing_policy = load_balancing_policy or RoundRobinPolicy()
        self.reconnection_policy = reconnection_policy or ExponentialReconnectionPolicy(1.0, 600.0)
        self.address_translator = address_translator or IdentityTranslator()
        self.resolver_workers = resolver_workers

    @classmethod
    def from_config(cls, directory, name=config_name, user_directory='~'):
        """
        Creates options from the configuration files named after name in the given directory.
        See config.load_config for the files read.
        """
        conf = load_config(name, directory, schema_file, user_directory)
        options = cls()
        connection = fetch_conf_path(conf, ['connection'])
        if connection:
            apply_conf(connection, options)
        options.reconnection_policy = reconnection_policy_from_config(fetch_conf_path(conf, ['reconnection']))
        logger.debug("loaded options %s" % options)
        return options


def reconnection_policy_from_config(conf):
    """
    >>> reconnection_policy_from_config({'policy': 'constant', 'delay': 2.0, 'max_attempts': None}).delay
    2.0
    """
    if conf['policy'] == 'constant':
        return ConstantReconnectionPolicy(conf['delay'], conf['max_attempts'])
    return ExponentialReconnectionPolicy(conf['base_delay'], conf['max_delay'], conf['max_attempts'])
