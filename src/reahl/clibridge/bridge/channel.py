import asyncio
import json
import logging

from reahl.clibridge.bridge.configuration import DomainException
from reahl.clibridge.bridge.configuration import InvalidServerConfiguration
from reahl.clibridge.bridge.configuration import server_named


COMMAND_TIMEOUT = 30
READ_CHUNK_SIZE = 65536

AUTH_REQUIRED = 'AUTH_REQUIRED'
AUTH_FAILED = 'AUTH_FAILED'


def ok_response(data):
    return {'status': 'ok', 'data': data}


def error_response(message, code=None):
    response = {'status': 'error', 'message': message}
    if code:
        response['code'] = code
    return response


def is_ok(response):
    return response.get('status') == 'ok'


def command_verb(command):
    return command.split(' ', 1)[0]


def command_line(command, server):
    prefix = 'AUTH:%s ' % server.api_key if server.has_api_key else ''
    return '%s%s\n' % (prefix, command)


def with_actionable_auth_message(response, server):
    if response.get('status') != 'error':
        return response
    code = response.get('code')
    if code == AUTH_REQUIRED:
        return error_response(
            "Authentication required for '%s'. Add apiKey to your config."
            % server.name,
            code=code,
        )
    if code == AUTH_FAILED:
        return error_response(
            "Invalid API key for '%s'. Check your configuration." % server.name,
            code=code,
        )
    return response


def interpreted_response(raw_text, server):
    # Only the first line of output carries the response.
    first_line = raw_text.strip().split('\n')[0]
    try:
        response = json.loads(first_line)
    except ValueError as error:
        return error_response('Invalid JSON response: %s' % error)
    if not isinstance(response, dict):
        return error_response(
            'Invalid JSON response: expected an object, got %s'
            % type(response).__name__
        )
    return with_actionable_auth_message(response, server)


def resolved_server(server_name):
    server = server_named(server_name)
    descriptor_validation = server.validation()
    if not descriptor_validation:
        raise InvalidServerConfiguration(
            "Invalid configuration for server '%s': %s"
            % (server.name, descriptor_validation.error)
        )
    return server


class CommandExchange:
    """One command sent over one connection.

    The exchange moves through connecting, writing and reading and ends in
    exactly one of closed, timed-out or errored. Only the first terminal
    outcome is kept; anything reported afterwards is ignored.
    """

    terminal_states = ('closed', 'timed-out', 'errored')

    def __init__(self, server, command, timeout=COMMAND_TIMEOUT):
        self.server = server
        self.command = command
        self.timeout = timeout
        self.state = 'connecting'
        self.writer = None
        self.received_chunks = []
        self.response = None

    @property
    def is_resolved(self):
        return self.state in self.terminal_states

    def resolve(self, terminal_state, response):
        if self.is_resolved:
            return
        self.state = terminal_state
        self.response = response

    async def run(self):
        try:
            await asyncio.wait_for(self.converse(), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.destroy()
            self.resolve(
                'timed-out',
                error_response(
                    'Connection timed out to %s' % self.server.address
                ),
            )
        finally:
            await self.close()
        return self.response

    async def converse(self):
        try:
            request = command_line(self.command, self.server).encode('utf-8')
        except UnicodeError as error:
            self.resolve(
                'errored',
                error_response('Command cannot be encoded: %s' % error),
            )
            return
        try:
            reader, self.writer = await asyncio.open_connection(
                self.server.host,
                self.server.connection_port,
            )
            self.state = 'writing'
            self.writer.write(request)
            await self.writer.drain()
            if self.writer.can_write_eof():
                self.writer.write_eof()
            self.state = 'reading'
            await self.receive_all(reader)
        except ConnectionRefusedError:
            self.resolve(
                'errored',
                error_response(
                    'Connection refused to %s (%s). Is CliBridge running?'
                    % (self.server.name, self.server.address)
                ),
            )
            return
        except (OSError, UnicodeError) as error:
            # An unencodable host name surfaces as UnicodeError from the idna codec.
            self.resolve('errored', error_response('Connection error: %s' % error))
            return
        self.resolve(
            'closed',
            interpreted_response(self.received_text(), self.server),
        )

    async def receive_all(self, reader):
        while True:
            chunk = await reader.read(READ_CHUNK_SIZE)
            if not chunk:
                return
            self.received_chunks.append(chunk)

    def received_text(self):
        return b''.join(self.received_chunks).decode('utf-8', errors='replace')

    def destroy(self):
        if self.writer is not None:
            self.writer.transport.abort()

    async def close(self):
        if self.writer is None:
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as error:
            logging.getLogger(__name__).debug(
                'Ignoring error while closing connection to %s: %s',
                self.server.address,
                error,
            )


async def execute(command, server_name=None, timeout=COMMAND_TIMEOUT):
    try:
        server = resolved_server(server_name)
    except DomainException as error:
        return error_response(str(error))
    logging.getLogger(__name__).debug(
        'Sending %s to %s at %s',
        command_verb(command),
        server.name,
        server.address,
    )
    exchange = CommandExchange(server, command, timeout=timeout)
    response = await exchange.run()
    logging.getLogger(__name__).debug(
        '%s to %s ended %s',
        command_verb(command),
        server.name,
        exchange.state,
    )
    return response
