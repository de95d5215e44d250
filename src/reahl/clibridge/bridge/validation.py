"""Input checks applied to every caller supplied token before it reaches CliBridge.

Commands are sent as a single line of text that the image splits on spaces
and, for EVAL, hands to the compiler. Each check here answers a
ValidationResult instead of raising, so that a rejected argument can be
reported to the MCP client as an ordinary tool response.

Every check bounds the length of its input before doing any pattern
matching.
"""

import math
import re


MAX_INPUT_LENGTH = 1000
MAX_SERVER_NAME_LENGTH = 100
MAX_SOURCE_LENGTH = 100000
MAX_HOST_LENGTH = 253
MAX_HOST_LABEL_LENGTH = 63

MINIMUM_PORT = 1
MAXIMUM_PORT = 65535

METHOD_SIDES = ('instance', 'class')

# Control characters end the command line early; the rest suggest shell or
# template substitution.
dangerous_character_pattern = re.compile(r'[\x00-\x1f\x7f`${}]')
expression_control_character_pattern = re.compile(
    r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]'
)
# Unpaired surrogates cannot be encoded as UTF-8 for the wire.
surrogate_pattern = re.compile(r'[\ud800-\udfff]')

class_name_pattern = re.compile(r'[A-Za-z][A-Za-z0-9]*(\.[A-Za-z][A-Za-z0-9]*)*')
variable_name_pattern = re.compile(r'[A-Za-z][A-Za-z0-9_]*')
server_name_pattern = re.compile(r'[a-zA-Z][a-zA-Z0-9_-]*')
host_name_pattern = re.compile(
    r'[a-z0-9]([a-z0-9\-.]*[a-z0-9])?',
    re.IGNORECASE,
)

unary_selector_pattern = re.compile(r'[a-z][a-zA-Z0-9]*')
binary_selector_pattern = re.compile(r'[+\-*/\\~<>=@%|&?!,]+')
keyword_selector_pattern = re.compile(r'([a-z][a-zA-Z0-9]*:)+')


class ValidationResult:
    def __init__(self, valid, error=None):
        self.valid = valid
        self.error = error

    def __bool__(self):
        return self.valid

    def __eq__(self, other):
        if not isinstance(other, ValidationResult):
            return NotImplemented
        return (self.valid, self.error) == (other.valid, other.error)

    def __hash__(self):
        return hash((self.valid, self.error))

    def __repr__(self):
        if self.valid:
            return 'ValidationResult(valid=True)'
        return 'ValidationResult(valid=False, error=%r)' % self.error


def valid():
    return ValidationResult(True)


def invalid(error):
    return ValidationResult(False, error)


def first_invalid(*checks):
    for validate, value in checks:
        validation_result = validate(value)
        if not validation_result:
            return validation_result
    return valid()


def contains_dangerous_characters(text):
    return dangerous_character_pattern.search(text) is not None


def contains_surrogates(text):
    return surrogate_pattern.search(text) is not None


def is_unary_selector(selector):
    return unary_selector_pattern.fullmatch(selector) is not None


def is_binary_selector(selector):
    return binary_selector_pattern.fullmatch(selector) is not None


def is_keyword_selector(selector):
    return keyword_selector_pattern.fullmatch(selector) is not None


def validated_identifier_text(text, description, maximum_length):
    if not isinstance(text, str):
        return invalid('%s must be a string' % description)
    if not text:
        return invalid('%s cannot be empty' % description)
    if len(text) > maximum_length:
        return invalid(
            '%s exceeds maximum length of %s' % (description, maximum_length)
        )
    if contains_dangerous_characters(text):
        return invalid('%s contains invalid characters' % description)
    return valid()


def validate_class_name(name):
    text_validation = validated_identifier_text(
        name,
        'Class name',
        MAX_INPUT_LENGTH,
    )
    if not text_validation:
        return text_validation
    if not class_name_pattern.fullmatch(name):
        return invalid(
            'Class name must start with a letter and contain only '
            'letters, digits, or dots'
        )
    return valid()


def validate_selector(selector):
    text_validation = validated_identifier_text(
        selector,
        'Selector',
        MAX_INPUT_LENGTH,
    )
    if not text_validation:
        return text_validation
    if not (
        is_unary_selector(selector)
        or is_binary_selector(selector)
        or is_keyword_selector(selector)
    ):
        return invalid(
            'Invalid selector format. Must be unary (e.g., size), '
            'binary (e.g., +), or keyword (e.g., at:put:)'
        )
    return valid()


def validate_variable_name(name):
    text_validation = validated_identifier_text(
        name,
        'Variable name',
        MAX_INPUT_LENGTH,
    )
    if not text_validation:
        return text_validation
    if not variable_name_pattern.fullmatch(name):
        return invalid(
            'Variable name %s must start with a letter and contain only '
            'letters, digits, or underscores' % name
        )
    return valid()


def validate_variable_names(names):
    if names is None:
        return valid()
    if not isinstance(names, (list, tuple)):
        return invalid('Variable names must be a list of strings')
    return first_invalid(*[(validate_variable_name, name) for name in names])


def validate_category(category):
    return validated_identifier_text(category, 'Category', MAX_INPUT_LENGTH)


def validate_side(side):
    if side not in METHOD_SIDES:
        return invalid("Side must be 'instance' or 'class'")
    return valid()


def port_number_from_text(text):
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None


def validate_port(port):
    if isinstance(port, str):
        port = port_number_from_text(port)
    if isinstance(port, bool) or not isinstance(port, (int, float)):
        return invalid('Port must be a number')
    if isinstance(port, float):
        if math.isnan(port):
            return invalid('Port must be a number')
        if not port.is_integer():
            return invalid('Port must be an integer')
    if port < MINIMUM_PORT or port > MAXIMUM_PORT:
        return invalid(
            'Port must be between %s and %s' % (MINIMUM_PORT, MAXIMUM_PORT)
        )
    return valid()


def validate_host(host):
    if not isinstance(host, str):
        return invalid('Host must be a string')
    if not host:
        return invalid('Host cannot be empty')
    if len(host) > MAX_HOST_LENGTH:
        return invalid('Host exceeds maximum length')
    if contains_dangerous_characters(host):
        return invalid('Host contains invalid characters')
    if host != 'localhost' and not host_name_pattern.fullmatch(host):
        return invalid('Invalid hostname format')
    if any(
        not label or len(label) > MAX_HOST_LABEL_LENGTH
        for label in host.split('.')
    ):
        return invalid('Invalid hostname format')
    return valid()


def validate_pattern(pattern):
    # Patterns are search text, not identifiers: anything that survives the
    # character gate may be sent.
    if not isinstance(pattern, str):
        return invalid('Pattern must be a string')
    if len(pattern) > MAX_INPUT_LENGTH:
        return invalid(
            'Pattern exceeds maximum length of %s' % MAX_INPUT_LENGTH
        )
    if pattern in ('', '*'):
        return valid()
    if contains_dangerous_characters(pattern) or contains_surrogates(pattern):
        return invalid('Pattern contains invalid characters')
    return valid()


def validate_expression(expression):
    if not isinstance(expression, str):
        return invalid('Expression must be a string')
    if not expression:
        return invalid('Expression cannot be empty')
    if len(expression) > MAX_INPUT_LENGTH:
        return invalid(
            'Expression exceeds maximum length of %s' % MAX_INPUT_LENGTH
        )
    # Newlines and tabs are legitimate in multi-line code.
    if expression_control_character_pattern.search(expression):
        return invalid('Expression contains invalid control characters')
    if contains_surrogates(expression):
        return invalid('Expression contains invalid characters')
    return valid()


def validate_source(source):
    if not isinstance(source, str):
        return invalid('Source must be a string')
    if not source:
        return invalid('Source cannot be empty')
    if len(source) > MAX_SOURCE_LENGTH:
        return invalid(
            'Source exceeds maximum length of %s' % MAX_SOURCE_LENGTH
        )
    if '\x00' in source:
        return invalid('Source contains null bytes')
    if contains_surrogates(source):
        return invalid('Source contains invalid characters')
    return valid()


def validate_server_name(name):
    if name is None:
        return valid()
    if not isinstance(name, str):
        return invalid('Server name must be a string')
    if not name:
        return invalid('Server name cannot be empty string')
    if len(name) > MAX_SERVER_NAME_LENGTH:
        return invalid('Server name exceeds maximum length')
    if contains_dangerous_characters(name):
        return invalid('Server name contains invalid characters')
    if not server_name_pattern.fullmatch(name):
        return invalid(
            'Server name must start with a letter and contain only '
            'letters, digits, underscores, or hyphens'
        )
    return valid()
