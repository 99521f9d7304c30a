"""
Layered configuration for endpoints.

Options are read from .cfg files named after a configuration name, each layer overriding
the one before:

- <name>.default.cfg
- <name>.<os>.cfg, e.g. livesocket.windows.cfg
- ~/<name>.cfg
- <name>.cfg

The merged configuration is validated against <name>.schema.cfg. The package ships
livesocket.default.cfg and livesocket.schema.cfg with the built-in defaults.
"""
import os
import platform

from configobj import ConfigObj, ConfigObjError, Section
from validate import Validator

# The default extension for configuration files
config_extension = '.cfg'

# where the shipped configuration files live
config_directory = os.path.dirname(__file__)


def config_flavor(name, flavor=None):
    configname = name if not flavor else name + '.' + flavor
    return configname


def config_filename(name, directory=None):
    """
    Determines the location of a config file. Relative to this module when no directory is given.
    """
    config_file = os.path.join(directory or config_directory, name + config_extension)
    return config_file


def load_config_file_base(file, must_exist=True, **kwargs):
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :param kwargs:      passed on to ConfigObj
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, interpolation='Template', file_error=must_exist, **kwargs) \
            if must_exist or os.path.exists(file) else ConfigObj(**kwargs)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, subpart=None) -> ConfigObj:
    """
    Loads a specialization of a config file. The configuration file is expected to be named
    after the base, followed by a period and then the specialization, if the specialization is given,
    otherwise just the base name.
    :param name:    The name of the base configuration
    :param subpart: The name of the specialization.
    :return: The ConfigObj for the configuration file, empty if there is no such file.
    """
    configname = config_flavor(name, subpart)
    file = config_filename(configname, directory)
    return load_config_file_base(file, False)


def config_schema_file(name, directory) -> ConfigObj:
    """ Loads <name>.schema.cfg as a configspec, so checks such as float(min=0, default=1) are kept whole """
    file = config_filename(config_flavor(name, 'schema'), directory)
    if not os.path.exists(file):
        return ConfigObj(list_values=False, _inspec=True)
    try:
        return ConfigObj(file, list_values=False, _inspec=True)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def user_config_file(name):
    return os.path.expanduser('~/' + name + config_extension)


def load_config(name, directory=None):
    """
        Loads all the configuration files that relate to the given name.
        Configurations are loaded in this order:
        - the default specialization
        - the platform specialization
        - the user override
        - the base configuration
        The configurations are flattened into a single configuration, and then validated
        against a configuration specialization "schema".
    :param directory: the location of the configuration files
    :return: the validated configuration
    :raises ConfigObjError: when the merged configuration does not pass validation
    """
    local_config = config_flavor_file(name, directory)
    default_config = config_flavor_file(name, directory, 'default')
    platform_config = config_flavor_file(name, directory, os_name())
    user_config = load_config_file_base(user_config_file(name), must_exist=False)
    config = ConfigObj()
    config.merge(default_config)
    config.merge(platform_config)
    config.merge(user_config)
    config.merge(local_config)

    config.configspec = config_schema_file(name, directory)
    validator = Validator()
    result = config.validate(validator)
    if result is not True:
        raise ConfigObjError("the config file %s failed validation %s" % (name, result))
    return config


def fetch_conf_path(conf: Section, path):
    """
    Retrieves the named configuration section
    :param conf:        The root configuration
    :param path:        An iterable that lists the names of the sections to resolve
    :return: The configuration section identified by the path, or None
    """
    for p in path:    # lookup specific section
        conf = conf.get(p, None)
        if conf is None:
            return
    return conf


def apply_conf_path(conf: Section, name_parts, target):
    """
    Applies a configuration path to a given target object
    :param conf:        The root configuration object
    :param name_parts:  The path of the configuration to apply
    :param target:      The target object that receives the configured values
    """
    conf = fetch_conf_path(conf, name_parts)
    if conf:
        apply_conf(conf, target)


def apply_conf(conf: Section, target):
    """
    Applies the attributes contained in a configuration object to a target object.
    It does this by iterating over the items in the configuration and setting any attributes with the same name.
    Values without a matching attribute are ignored.
    """
    for k, v in conf.items():
        if hasattr(target, k):
            setattr(target, k, v)


class EndpointOptions:
    """
    The timing options of an endpoint. All durations are in seconds.

    :param ping_interval: how often the initiating side sends a heartbeat. 0 disables sending.
    :param ping_timeout: how long the initiating side waits for a reply to each heartbeat
    :param ping_window_threshold: the responsive side expects the next heartbeat within this
        multiple of the average gap between heartbeats
    :param min_reconnect_delay: the wait before the first reconnection attempt
    :param max_reconnect_delay: the longest wait between attempts. Negative disables reconnection.

    >>> EndpointOptions(ping_interval=5).ping_interval
    5
    """
    ping_interval = 0.0
    ping_timeout = 3.0
    ping_window_threshold = 1.2
    min_reconnect_delay = 0.75
    max_reconnect_delay = 10.0

    def __init__(self, **overrides):
        for k, v in overrides.items():
            if not hasattr(self, k):
                raise TypeError("unknown endpoint option '%s'" % k)
            setattr(self, k, v)

    def check(self):
        """
        :raises ValueError: if a value can not be used
        :return: self
        """
        for name in ('ping_interval', 'ping_timeout', 'ping_window_threshold', 'min_reconnect_delay'):
            if getattr(self, name) < 0:
                raise ValueError("%s must not be negative, got %r" % (name, getattr(self, name)))
        return self

    def __repr__(self):
        return "EndpointOptions(ping_interval=%r, ping_timeout=%r, ping_window_threshold=%r, " \
               "min_reconnect_delay=%r, max_reconnect_delay=%r)" % \
               (self.ping_interval, self.ping_timeout, self.ping_window_threshold,
                self.min_reconnect_delay, self.max_reconnect_delay)


def load_options(name='livesocket', directory=None, section='endpoint') -> EndpointOptions:
    """
    Loads endpoint options from the layered configuration files.
    :param name: the configuration name
    :param directory: where to find the configuration files. Defaults to the files shipped with this package.
    :param section: the dotted path of the section holding the options
    """
    conf = load_config(name, directory)
    options = EndpointOptions()
    apply_conf_path(conf, section.split('.'), options)
    return options.check()
