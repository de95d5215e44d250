import argparse
import logging
import sys

from reahl.clibridge import __version__
from reahl.clibridge.bridge import current_configuration
from reahl.clibridge.bridge import current_configuration_cache
from reahl.clibridge.mcp.server import create_server


def argument_parser():
    parser = argparse.ArgumentParser(
        description=(
            'Run CliBridgeMCP server, exposing VisualWorks images '
            'running CliBridge as MCP tools.'
        )
    )
    parser.add_argument(
        '--transport',
        default='stdio',
        choices=['stdio'],
        help='MCP transport type.',
    )
    parser.add_argument(
        '--config',
        default=None,
        help=(
            'Path of a servers.json file to use instead of '
            '$CLIBRIDGE_CONFIG, ~/.config/clibridge/servers.json '
            'and ~/.clibridge/servers.json.'
        ),
    )
    parser.add_argument(
        '--read-only',
        action='store_true',
        help=(
            'Disable eval_smalltalk, edit_method, undo_edit and '
            'create_class.'
        ),
    )
    parser.add_argument(
        '--version',
        action='version',
        version='%%(prog)s %s' % __version__,
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log every command sent to CliBridge.',
    )
    return parser


def configure_logging(verbose):
    # stdout carries the MCP stdio transport.
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


def run_application(command_line_arguments=None):
    arguments = argument_parser().parse_args(command_line_arguments)
    configure_logging(arguments.verbose)
    if arguments.config:
        current_configuration_cache().use_path(arguments.config)
    configuration = current_configuration()
    logging.getLogger(__name__).info(
        'CliBridgeMCP starting (%s server(s) configured, default: %s)',
        len(configuration.server_names()),
        configuration.resolved_server_name(),
    )
    mcp_server = create_server(read_only=arguments.read_only)
    mcp_server.run(transport=arguments.transport)


if __name__ == '__main__':
    run_application()
