"""
Layered configuration files, read with configobj and checked against a configspec.

For a configuration named 'clustercontrol', these files are read from a directory, each
overriding the ones before it. Any of them may be absent.

- clustercontrol.default.cfg
- clustercontrol.<os>.cfg, e.g. clustercontrol.linux.cfg or clustercontrol.osx.cfg
- clustercontrol.cfg in the user directory
- clustercontrol.cfg
"""
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section, flatten_errors
from validate import Validator

config_extension = '.cfg'


def config_flavor(name, flavor=None):
    """
    >>> config_flavor('clustercontrol', 'default')
    'clustercontrol.default'
    >>> config_flavor('clustercontrol')
    'clustercontrol'
    """
    return '.'.join(p for p in (name, flavor) if p)


def config_filename(name, directory=None):
    return os.path.join(directory or '', name + config_extension)


def load_config_file_base(file, must_exist=True):
    """
    Reads one configuration file.
    :param must_exist: when False, a missing file reads as an empty configuration.
    Syntax errors are raised as ConfigObjError naming the file.
    """
    if not must_exist and not os.path.exists(file):
        return ConfigObj()
    try:
        return ConfigObj(file, interpolation='Template', file_error=True)
    except ConfigObjError as e:
        raise type(e)("%s at %s" % (e, file)) from e


def config_flavor_file(name, directory, flavor=None) -> ConfigObj:
    return load_config_file_base(config_filename(config_flavor(name, flavor), directory), must_exist=False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    return 'osx' if name == 'darwin' else name


def os_name():
    return map_os_name(platform.system())


def describe_errors(config, result):
    """
    :return: one "section.key: problem" string per value that failed validation
    """
    described = []
    for sections, key, error in flatten_errors(config, result):
        path = '.'.join(sections + ([key] if key is not None else []))
        described.append("%s: %s" % (path, 'missing' if error is False else error))
    return described


def load_config(name, directory, schema, user_directory='~'):
    """
    Reads and merges the layered files for name, see the module description.

    :param directory: where the configuration files are
    :param schema: the configspec file. It validates the merged values and supplies defaults.
    :param user_directory: where the user's own file is, or None to skip it
    :return: the validated ConfigObj
    """
    layers = [config_flavor_file(name, directory, 'default'),
              config_flavor_file(name, directory, os_name())]
    if user_directory:
        user_file = config_filename(name, os.path.expanduser(user_directory))
        layers.append(load_config_file_base(user_file, must_exist=False))
    layers.append(config_flavor_file(name, directory))

    config = ConfigObj(configspec=schema)
    for layer in layers:
        config.merge(layer)

    result = config.validate(Validator())
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" %
                             (name, "; ".join(describe_errors(config, result))))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Follows a list of section names down from conf.
    :return: the section found, or None if any name along the path is missing
    """
    for section in path:
        conf = conf.get(section)
        if conf is None:
            return None
    return conf


def apply_conf(conf: Section, target):
    """
    Copies the values of a section onto the attributes of target with the same names.
    Values without a matching attribute, and subsections, are ignored.
    """
    for key, value in conf.items():
        if not isinstance(value, Section) and hasattr(target, key):
            setattr(target, key, value)
