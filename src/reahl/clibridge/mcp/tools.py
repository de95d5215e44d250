import base64
import json

from reahl.clibridge.bridge import current_configuration
from reahl.clibridge.bridge import execute
from reahl.clibridge.bridge import first_invalid
from reahl.clibridge.bridge import is_ok
from reahl.clibridge.bridge import server_named
from reahl.clibridge.bridge import validate_category
from reahl.clibridge.bridge import validate_class_name
from reahl.clibridge.bridge import validate_expression
from reahl.clibridge.bridge import validate_pattern
from reahl.clibridge.bridge import validate_selector
from reahl.clibridge.bridge import validate_server_name
from reahl.clibridge.bridge import validate_side
from reahl.clibridge.bridge import validate_source
from reahl.clibridge.bridge import validate_variable_names
from reahl.clibridge.mcp.formatting import class_info_text
from reahl.clibridge.mcp.formatting import create_class_text
from reahl.clibridge.mcp.formatting import edit_text
from reahl.clibridge.mcp.formatting import eval_text
from reahl.clibridge.mcp.formatting import format_response
from reahl.clibridge.mcp.formatting import hierarchy_text
from reahl.clibridge.mcp.formatting import implementors_text
from reahl.clibridge.mcp.formatting import messages_text
from reahl.clibridge.mcp.formatting import ping_text
from reahl.clibridge.mcp.formatting import search_text
from reahl.clibridge.mcp.formatting import senders_text
from reahl.clibridge.mcp.formatting import server_listing_text
from reahl.clibridge.mcp.formatting import undo_text
from reahl.clibridge.mcp.formatting import validation_error_text


DEFAULT_CLASS_CATEGORY = 'CliBridge-Created'


def base64_text(text):
    return base64.b64encode(text.encode('utf-8')).decode('ascii')


def rendered_response(response, render_data, expected_data_type=dict):
    if not is_ok(response):
        return format_response(response)
    data = response.get('data')
    if data is None and expected_data_type is list:
        data = []
    if not isinstance(data, expected_data_type):
        return format_response(response)
    return render_data(data)


def register_tools(mcp_server, read_only=False):
    if not isinstance(read_only, bool):
        raise ValueError('read_only must be a boolean.')

    def disabled_tool_response(tool_name):
        return (
            '%s is disabled. '
            'Start clibridge-mcp without --read-only to enable.'
        ) % tool_name

    def require_writes_enabled(tool_name):
        if read_only:
            return disabled_tool_response(tool_name)
        return None

    def validation_failure(*checks):
        validation_result = first_invalid(*checks)
        if validation_result:
            return None
        return validation_error_text(validation_result)

    async def executed(command, image, render_data=None, expected_data_type=dict):
        response = await execute(command, image)
        if render_data is None:
            return format_response(response)
        return rendered_response(response, render_data, expected_data_type)

    @mcp_server.tool()
    async def ping(image=None):
        """Test connection to the CliBridge server in a VisualWorks image."""
        error_text = validation_failure((validate_server_name, image))
        if error_text:
            return error_text
        response = await execute('PING', image)
        if is_ok(response):
            return ping_text(server_named(image))
        return format_response(response)

    @mcp_server.tool()
    async def classes(pattern='*', image=None):
        """List classes in the image, optionally filtered by a case-insensitive substring pattern."""
        error_text = validation_failure(
            (validate_pattern, pattern),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('CLASSES %s' % pattern, image)

    @mcp_server.tool()
    async def class_info(class_name, image=None):
        """Get the definition, variables, category and comment of a class."""
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('CLASS %s' % class_name, image, class_info_text)

    @mcp_server.tool()
    async def methods(class_name, side='instance', image=None):
        """List the selectors of a class, on the 'instance' or 'class' side."""
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_side, side),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('METHODS %s %s' % (class_name, side), image)

    @mcp_server.tool()
    async def source(class_name, selector, image=None):
        """Get the source code of a method (e.g. selector 'at:put:')."""
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_selector, selector),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('SOURCE %s %s' % (class_name, selector), image)

    @mcp_server.tool()
    async def fullsource(class_name, image=None):
        """Get the complete source of a class including all of its methods."""
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('FULLSOURCE %s' % class_name, image)

    @mcp_server.tool()
    async def hierarchy(class_name, image=None):
        """Get the superclasses and direct subclasses of a class."""
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('HIERARCHY %s' % class_name, image, hierarchy_text)

    @mcp_server.tool()
    async def eval_smalltalk(expression, image=None):
        """Evaluate a Smalltalk expression in the running image."""
        disabled_text = require_writes_enabled('eval_smalltalk')
        if disabled_text:
            return disabled_text
        error_text = validation_failure(
            (validate_expression, expression),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('EVAL %s' % expression, image, eval_text)

    @mcp_server.tool()
    async def namespaces(image=None):
        """List all namespaces in the image."""
        error_text = validation_failure((validate_server_name, image))
        if error_text:
            return error_text
        return await executed('NAMESPACES', image)

    @mcp_server.tool()
    async def search(pattern, image=None):
        """Search for classes and methods matching a case-insensitive substring pattern."""
        error_text = validation_failure(
            (validate_pattern, pattern),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed('SEARCH %s' % pattern, image, search_text, list)

    @mcp_server.tool()
    async def senders(selector, image=None):
        """Find all methods that send the given selector."""
        error_text = validation_failure(
            (validate_selector, selector),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed(
            'SENDERS %s' % selector,
            image,
            lambda found_senders: senders_text(selector, found_senders),
            list,
        )

    @mcp_server.tool()
    async def implementors(selector, image=None):
        """Find all classes that implement the given selector."""
        error_text = validation_failure(
            (validate_selector, selector),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed(
            'IMPLEMENTORS %s' % selector,
            image,
            lambda found_implementors: implementors_text(
                selector,
                found_implementors,
            ),
            list,
        )

    @mcp_server.tool()
    async def messages(class_name, selector, image=None):
        """Get the messages sent and literals referenced by a method, without needing its source."""
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_selector, selector),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed(
            'MESSAGES %s %s' % (class_name, selector),
            image,
            messages_text,
        )

    @mcp_server.tool()
    async def edit_method(
        class_name,
        selector,
        source,
        side='instance',
        image=None,
    ):
        """Add or replace a method, backing up the existing one for a single-level undo.

        The source must be the complete method including its signature line.
        """
        disabled_text = require_writes_enabled('edit_method')
        if disabled_text:
            return disabled_text
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_selector, selector),
            (validate_source, source),
            (validate_side, side),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed(
            'EDIT %s %s %s %s' % (class_name, selector, side, base64_text(source)),
            image,
            edit_text,
        )

    @mcp_server.tool()
    async def undo_edit(class_name, selector, side='instance', image=None):
        """Restore the version of a method saved by its last edit. Works once per edit."""
        disabled_text = require_writes_enabled('undo_edit')
        if disabled_text:
            return disabled_text
        error_text = validation_failure(
            (validate_class_name, class_name),
            (validate_selector, selector),
            (validate_side, side),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        return await executed(
            'UNDO %s %s %s' % (class_name, selector, side),
            image,
            undo_text,
        )

    @mcp_server.tool()
    async def create_class(
        name,
        superclass='Object',
        instance_variables=None,
        class_variables=None,
        class_instance_variables=None,
        category=DEFAULT_CLASS_CATEGORY,
        image=None,
    ):
        """Create a new class in the image. Fails if the class already exists."""
        disabled_text = require_writes_enabled('create_class')
        if disabled_text:
            return disabled_text
        error_text = validation_failure(
            (validate_class_name, name),
            (validate_class_name, superclass),
            (validate_variable_names, instance_variables),
            (validate_variable_names, class_variables),
            (validate_variable_names, class_instance_variables),
            (validate_category, category),
            (validate_server_name, image),
        )
        if error_text:
            return error_text
        class_definition = {
            'name': name,
            'superclass': superclass,
            'instanceVariables': list(instance_variables or []),
            'classVariables': list(class_variables or []),
            'classInstanceVariables': list(class_instance_variables or []),
            'category': category,
        }
        encoded_definition = base64_text(
            json.dumps(class_definition, separators=(',', ':'))
        )
        return await executed(
            'CREATECLASS %s' % encoded_definition,
            image,
            create_class_text,
        )

    @mcp_server.tool()
    def list_images():
        """List all configured CliBridge servers."""
        return server_listing_text(current_configuration())
