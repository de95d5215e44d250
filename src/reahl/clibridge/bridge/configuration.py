import json
import logging
import os
import threading

from reahl.clibridge.bridge.validation import first_invalid
from reahl.clibridge.bridge.validation import port_number_from_text
from reahl.clibridge.bridge.validation import validate_host
from reahl.clibridge.bridge.validation import validate_port


CONFIG_PATH_VARIABLE = 'CLIBRIDGE_CONFIG'
LEGACY_HOST_VARIABLE = 'VWCLI_HOST'
LEGACY_PORT_VARIABLE = 'VWCLI_PORT'
LEGACY_API_KEY_VARIABLE = 'VWCLI_API_KEY'

DEFAULT_SERVER_NAME = 'default'
DEFAULT_HOST = 'localhost'
DEFAULT_PORT = 9999


class DomainException(Exception):
    pass


class UnknownServer(DomainException):
    def __init__(self, server_name, available_server_names):
        self.server_name = server_name
        self.available_server_names = list(available_server_names)
        super().__init__(
            'Unknown server: %s. Available: %s'
            % (server_name, ', '.join(self.available_server_names))
        )


class InvalidServerConfiguration(DomainException):
    pass


class ServerDescriptor:
    def __init__(self, name, host, port, api_key=None):
        self.name = name
        self.host = host
        self.port = port
        self.api_key = api_key or None

    @classmethod
    def from_config_entry(cls, name, config_entry):
        if not isinstance(config_entry, dict):
            raise InvalidServerConfiguration(
                'Server %s must be described by an object.' % name
            )
        return cls(
            name,
            config_entry.get('host', DEFAULT_HOST),
            config_entry.get('port'),
            api_key=config_entry.get('apiKey'),
        )

    @property
    def has_api_key(self):
        return self.api_key is not None

    @property
    def address(self):
        return '%s:%s' % (self.host, self.port)

    @property
    def connection_port(self):
        if isinstance(self.port, str):
            return int(port_number_from_text(self.port))
        return int(self.port)

    def validation(self):
        return first_invalid(
            (validate_host, self.host),
            (validate_port, self.port),
        )

    def __eq__(self, other):
        if not isinstance(other, ServerDescriptor):
            return NotImplemented
        return (self.name, self.host, self.port, self.api_key) == (
            other.name,
            other.host,
            other.port,
            other.api_key,
        )

    def __hash__(self):
        return hash((self.name, self.host, self.port, self.api_key))

    def __repr__(self):
        return 'ServerDescriptor(%r, %r, %r, has_api_key=%r)' % (
            self.name,
            self.host,
            self.port,
            self.has_api_key,
        )


class ServerConfiguration:
    def __init__(self, servers_by_name, default_server_name=None, source=None):
        self.servers_by_name = dict(servers_by_name)
        self.default_server_name = default_server_name
        self.source = source

    @classmethod
    def from_json_payload(cls, payload, source=None):
        if not isinstance(payload, dict):
            raise InvalidServerConfiguration('Configuration must be an object.')
        server_entries = payload.get('servers')
        if not isinstance(server_entries, dict) or not server_entries:
            raise InvalidServerConfiguration(
                'Configuration must define at least one server under "servers".'
            )
        servers_by_name = {
            server_name: ServerDescriptor.from_config_entry(server_name, entry)
            for server_name, entry in server_entries.items()
        }
        return cls(servers_by_name, payload.get('default'), source=source)

    @classmethod
    def from_environment(cls, environment):
        port_text = environment.get(LEGACY_PORT_VARIABLE) or str(DEFAULT_PORT)
        port = port_number_from_text(port_text)
        if port is None:
            port = port_text
        descriptor = ServerDescriptor(
            DEFAULT_SERVER_NAME,
            environment.get(LEGACY_HOST_VARIABLE) or DEFAULT_HOST,
            port,
            api_key=environment.get(LEGACY_API_KEY_VARIABLE),
        )
        return cls(
            {DEFAULT_SERVER_NAME: descriptor},
            DEFAULT_SERVER_NAME,
            source='environment',
        )

    def server_names(self):
        return list(self.servers_by_name)

    def resolved_server_name(self, server_name=None):
        if server_name:
            return server_name
        if self.default_server_name:
            return self.default_server_name
        return next(iter(self.servers_by_name), None)

    def server_named(self, server_name=None):
        resolved_name = self.resolved_server_name(server_name)
        try:
            return self.servers_by_name[resolved_name]
        except KeyError:
            raise UnknownServer(resolved_name, self.server_names()) from None

    def is_default(self, server_name):
        return server_name == self.resolved_server_name()


def candidate_config_paths(environment=None):
    if environment is None:
        environment = os.environ
    home_directory = os.path.expanduser('~')
    config_paths = [
        environment.get(CONFIG_PATH_VARIABLE),
        os.path.join(home_directory, '.config', 'clibridge', 'servers.json'),
        os.path.join(home_directory, '.clibridge', 'servers.json'),
    ]
    return [config_path for config_path in config_paths if config_path]


def read_configuration_file(config_path):
    with open(config_path, encoding='utf-8') as config_file:
        payload = json.load(config_file)
    return ServerConfiguration.from_json_payload(payload, source=config_path)


def load_configuration(config_paths=None, environment=None):
    if environment is None:
        environment = os.environ
    if config_paths is None:
        config_paths = candidate_config_paths(environment)
    for config_path in config_paths:
        if not os.path.exists(config_path):
            continue
        try:
            configuration = read_configuration_file(config_path)
        except (OSError, ValueError, DomainException) as error:
            logging.getLogger(__name__).error(
                'Error loading config from %s: %s',
                config_path,
                error,
            )
            continue
        logging.getLogger(__name__).info('Loaded config from %s', config_path)
        return configuration
    logging.getLogger(__name__).debug(
        'No config file found, using %s/%s environment variables',
        LEGACY_HOST_VARIABLE,
        LEGACY_PORT_VARIABLE,
    )
    return ServerConfiguration.from_environment(environment)


class ConfigurationCache:
    def __init__(self):
        self.lock = threading.Lock()
        self.configuration = None
        self.forced_config_path = None

    def current(self):
        with self.lock:
            if self.configuration is None:
                self.configuration = self.load()
            return self.configuration

    def load(self):
        if self.forced_config_path:
            return load_configuration(config_paths=[self.forced_config_path])
        return load_configuration()

    def use_path(self, config_path):
        with self.lock:
            self.forced_config_path = config_path
            self.configuration = None

    def use_configuration(self, configuration):
        with self.lock:
            self.configuration = configuration

    def clear(self):
        with self.lock:
            self.configuration = None


configuration_cache = ConfigurationCache()


def current_configuration_cache():
    return configuration_cache


def current_configuration():
    return configuration_cache.current()


def clear_configuration_cache():
    configuration_cache.clear()


def server_named(server_name=None):
    return current_configuration().server_named(server_name)
