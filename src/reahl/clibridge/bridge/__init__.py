from reahl.clibridge.bridge.channel import COMMAND_TIMEOUT
from reahl.clibridge.bridge.channel import CommandExchange
from reahl.clibridge.bridge.channel import error_response
from reahl.clibridge.bridge.channel import execute
from reahl.clibridge.bridge.channel import is_ok
from reahl.clibridge.bridge.channel import ok_response
from reahl.clibridge.bridge.configuration import DomainException
from reahl.clibridge.bridge.configuration import InvalidServerConfiguration
from reahl.clibridge.bridge.configuration import ServerConfiguration
from reahl.clibridge.bridge.configuration import ServerDescriptor
from reahl.clibridge.bridge.configuration import UnknownServer
from reahl.clibridge.bridge.configuration import clear_configuration_cache
from reahl.clibridge.bridge.configuration import current_configuration
from reahl.clibridge.bridge.configuration import current_configuration_cache
from reahl.clibridge.bridge.configuration import server_named
from reahl.clibridge.bridge.validation import ValidationResult
from reahl.clibridge.bridge.validation import first_invalid
from reahl.clibridge.bridge.validation import validate_category
from reahl.clibridge.bridge.validation import validate_class_name
from reahl.clibridge.bridge.validation import validate_expression
from reahl.clibridge.bridge.validation import validate_host
from reahl.clibridge.bridge.validation import validate_pattern
from reahl.clibridge.bridge.validation import validate_port
from reahl.clibridge.bridge.validation import validate_selector
from reahl.clibridge.bridge.validation import validate_server_name
from reahl.clibridge.bridge.validation import validate_side
from reahl.clibridge.bridge.validation import validate_source
from reahl.clibridge.bridge.validation import validate_variable_names

__all__ = [
    'COMMAND_TIMEOUT',
    'CommandExchange',
    'DomainException',
    'InvalidServerConfiguration',
    'ServerConfiguration',
    'ServerDescriptor',
    'UnknownServer',
    'ValidationResult',
    'clear_configuration_cache',
    'current_configuration',
    'current_configuration_cache',
    'error_response',
    'execute',
    'first_invalid',
    'is_ok',
    'ok_response',
    'server_named',
    'validate_category',
    'validate_class_name',
    'validate_expression',
    'validate_host',
    'validate_pattern',
    'validate_port',
    'validate_selector',
    'validate_server_name',
    'validate_side',
    'validate_source',
    'validate_variable_names',
]
