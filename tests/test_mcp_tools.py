import asyncio
import base64
import json
from unittest.mock import patch

from reahl.tofu import Fixture
from reahl.tofu import NoException
from reahl.tofu import expected
from reahl.tofu import set_up
from reahl.tofu import tear_down
from reahl.tofu import with_fixtures

from reahl.clibridge.bridge import ServerConfiguration
from reahl.clibridge.bridge import clear_configuration_cache
from reahl.clibridge.bridge import current_configuration_cache
from reahl.clibridge.bridge import error_response
from reahl.clibridge.bridge import ok_response
from reahl.clibridge.mcp.tools import register_tools


class McpToolRegistrar:
    def __init__(self):
        self.registered_tools_by_name = {}

    def tool(self):
        def register(function):
            self.registered_tools_by_name[function.__name__] = function
            return function

        return register


class RecordingChannel:
    def __init__(self):
        self.sent_commands = []
        self.response = ok_response(None)

    async def execute(self, command, server_name=None):
        self.sent_commands.append((command, server_name))
        return self.response


class ToolsFixture(Fixture):
    read_only = False

    @set_up
    def install_configuration(self):
        current_configuration_cache().use_configuration(
            ServerConfiguration.from_json_payload(
                {
                    'servers': {
                        'dev': {'host': 'localhost', 'port': 9999},
                        'prod': {
                            'host': 'prod.local',
                            'port': 9998,
                            'apiKey': 'secret',
                        },
                    },
                    'default': 'dev',
                }
            )
        )
        self.channel_patch = patch(
            'reahl.clibridge.mcp.tools.execute',
            self.channel.execute,
        )
        self.channel_patch.start()

    @tear_down
    def restore_channel(self):
        self.channel_patch.stop()
        clear_configuration_cache()

    def new_channel(self):
        return RecordingChannel()

    def new_registered_mcp_tools(self):
        registrar = McpToolRegistrar()
        register_tools(registrar, read_only=self.read_only)
        return registrar.registered_tools_by_name

    def call(self, tool_name, *arguments, **keyword_arguments):
        tool = self.registered_mcp_tools[tool_name]
        result = tool(*arguments, **keyword_arguments)
        if asyncio.iscoroutine(result):
            return asyncio.run(result)
        return result

    def respond_with(self, response):
        self.channel.response = response

    @property
    def sent_commands(self):
        return [command for command, server_name in self.channel.sent_commands]


class ReadOnlyToolsFixture(ToolsFixture):
    read_only = True


@with_fixtures(ToolsFixture)
def test_all_cli_bridge_tools_are_registered(fixture):
    assert sorted(fixture.registered_mcp_tools) == sorted(
        [
            'ping',
            'classes',
            'class_info',
            'methods',
            'source',
            'fullsource',
            'hierarchy',
            'eval_smalltalk',
            'namespaces',
            'search',
            'senders',
            'implementors',
            'messages',
            'edit_method',
            'undo_edit',
            'create_class',
            'list_images',
        ]
    )


def test_register_tools_rejects_non_boolean_policy():
    with expected(ValueError):
        register_tools(McpToolRegistrar(), read_only='yes')
    with expected(NoException):
        register_tools(McpToolRegistrar(), read_only=True)


@with_fixtures(ToolsFixture)
def test_ping_names_the_server_that_answered(fixture):
    fixture.respond_with(ok_response('pong'))

    assert fixture.call('ping', image='prod') == (
        "Connected to CliBridge 'prod' at prod.local:9998"
    )
    assert fixture.channel.sent_commands == [('PING', 'prod')]


@with_fixtures(ToolsFixture)
def test_classes_sends_the_pattern_and_lists_one_name_per_line(fixture):
    fixture.respond_with(ok_response(['OrderedCollection', 'SortedCollection']))

    text = fixture.call('classes', 'Ordered*')

    assert fixture.sent_commands == ['CLASSES Ordered*']
    assert text == 'OrderedCollection\nSortedCollection'


@with_fixtures(ToolsFixture)
def test_classes_matches_everything_by_default(fixture):
    fixture.call('classes')

    assert fixture.sent_commands == ['CLASSES *']


@with_fixtures(ToolsFixture)
def test_class_info_is_rendered_field_by_field(fixture):
    fixture.respond_with(
        ok_response(
            {
                'name': 'OrderedCollection',
                'superclass': 'SequenceableCollection',
                'instanceVariables': ['firstIndex', 'lastIndex'],
                'classVariables': [],
                'category': 'Collections-Sequenceable',
                'comment': 'I am ordered.',
            }
        )
    )

    text = fixture.call('class_info', 'OrderedCollection')

    assert fixture.sent_commands == ['CLASS OrderedCollection']
    assert text == '\n'.join(
        [
            'Class: OrderedCollection',
            'Superclass: SequenceableCollection',
            'Instance Variables: firstIndex, lastIndex',
            'Class Variables: (none)',
            'Category: Collections-Sequenceable',
            'Comment: I am ordered.',
        ]
    )


@with_fixtures(ToolsFixture)
def test_invalid_input_never_reaches_the_channel(fixture):
    text = fixture.call('class_info', 'Class`whoami`')

    assert text == 'Validation error: Class name contains invalid characters'
    assert fixture.sent_commands == []


@with_fixtures(ToolsFixture)
def test_fields_are_validated_in_order_and_only_the_first_failure_is_reported(
    fixture,
):
    text = fixture.call('source', '123Class', 'Selector', image='bad name')

    assert text.startswith('Validation error: Class name must start with a letter')
    assert fixture.sent_commands == []


@with_fixtures(ToolsFixture)
def test_invalid_server_name_is_reported_as_a_validation_error(fixture):
    text = fixture.call('namespaces', image='dev\nEVAL')

    assert text == 'Validation error: Server name contains invalid characters'
    assert fixture.sent_commands == []


@with_fixtures(ToolsFixture)
def test_methods_and_source_commands(fixture):
    fixture.call('methods', 'OrderedCollection', 'class')
    fixture.call('source', 'OrderedCollection', 'add:')
    fixture.call('fullsource', 'Core.Object')

    assert fixture.sent_commands == [
        'METHODS OrderedCollection class',
        'SOURCE OrderedCollection add:',
        'FULLSOURCE Core.Object',
    ]


@with_fixtures(ToolsFixture)
def test_methods_rejects_an_unknown_side(fixture):
    text = fixture.call('methods', 'OrderedCollection', 'meta')

    assert text == "Validation error: Side must be 'instance' or 'class'"


@with_fixtures(ToolsFixture)
def test_hierarchy_lists_ancestors_and_direct_subclasses(fixture):
    fixture.respond_with(
        ok_response(
            {
                'class': 'OrderedCollection',
                'superclasses': ['Object', 'Collection'],
                'subclasses': [],
            }
        )
    )

    text = fixture.call('hierarchy', 'OrderedCollection')

    assert text == '\n'.join(
        [
            'Class: OrderedCollection',
            '',
            'Superclasses (ancestors):',
            '  Object',
            '  Collection',
            '',
            'Direct Subclasses:',
            '  (none)',
        ]
    )


@with_fixtures(ToolsFixture)
def test_eval_reports_result_and_class(fixture):
    fixture.respond_with(ok_response({'result': '6', 'class': 'SmallInteger'}))

    text = fixture.call('eval_smalltalk', '2 + 4')

    assert fixture.sent_commands == ['EVAL 2 + 4']
    assert text == '6 (SmallInteger)'


@with_fixtures(ToolsFixture)
def test_backend_errors_are_shown_as_errors(fixture):
    fixture.respond_with(error_response('MessageNotUnderstood: #foo'))

    assert fixture.call('eval_smalltalk', 'nil foo') == (
        'Error: MessageNotUnderstood: #foo'
    )


@with_fixtures(ToolsFixture)
def test_search_labels_classes_and_methods(fixture):
    fixture.respond_with(
        ok_response(
            [
                {'type': 'class', 'name': 'String'},
                {'type': 'method', 'class': 'Object', 'selector': 'printString'},
            ]
        )
    )

    assert fixture.call('search', 'String') == (
        '[class] String\n[method] Object >> printString'
    )


@with_fixtures(ToolsFixture)
def test_search_without_matches(fixture):
    fixture.respond_with(ok_response([]))

    assert fixture.call('search', 'Nothing') == 'No matches found'


@with_fixtures(ToolsFixture)
def test_senders_are_counted_and_listed(fixture):
    fixture.respond_with(
        ok_response(
            [
                {'class': 'Dictionary', 'selector': 'at:ifAbsent:'},
                {'class': 'Array', 'selector': 'first'},
            ]
        )
    )

    text = fixture.call('senders', 'at:')

    assert fixture.sent_commands == ['SENDERS at:']
    assert text == '\n'.join(
        [
            'Senders of #at: (2 found):',
            '  Dictionary >> at:ifAbsent:',
            '  Array >> first',
        ]
    )


@with_fixtures(ToolsFixture)
def test_missing_senders_data_is_treated_as_none_found(fixture):
    fixture.respond_with(ok_response(None))

    assert fixture.call('senders', 'at:') == 'No senders of #at: found'


@with_fixtures(ToolsFixture)
def test_implementors_show_the_side(fixture):
    fixture.respond_with(
        ok_response(
            [
                {'class': 'Object', 'side': 'instance'},
                {'class': 'Date', 'side': 'class'},
            ]
        )
    )

    assert fixture.call('implementors', 'printOn:') == '\n'.join(
        [
            'Implementors of #printOn: (2 found):',
            '  Object >> printOn:',
            '  Date class >> printOn:',
        ]
    )


@with_fixtures(ToolsFixture)
def test_messages_lists_sends_and_literals(fixture):
    fixture.respond_with(
        ok_response(
            {
                'class': 'OrderedCollection',
                'selector': 'add:',
                'messages': ['addLast:'],
                'literals': ['#add:'],
            }
        )
    )

    text = fixture.call('messages', 'OrderedCollection', 'add:')

    assert fixture.sent_commands == ['MESSAGES OrderedCollection add:']
    assert text == '\n'.join(
        [
            'Method: OrderedCollection >> add:',
            '',
            'Messages sent:',
            '  #addLast:',
            '',
            'Literals referenced:',
            '  #add:',
        ]
    )


@with_fixtures(ToolsFixture)
def test_edit_method_sends_the_source_base64_encoded(fixture):
    method_source = 'myMethod\n\t"Answer one"\n\t^1'
    fixture.respond_with(
        ok_response(
            {
                'class': 'MyClass',
                'selector': 'myMethod',
                'side': 'instance',
                'wasNew': True,
            }
        )
    )

    text = fixture.call('edit_method', 'MyClass', 'myMethod', method_source)

    verb, class_name, selector, side, encoded_source = fixture.sent_commands[0].split(' ')
    assert (verb, class_name, selector, side) == (
        'EDIT',
        'MyClass',
        'myMethod',
        'instance',
    )
    assert base64.b64decode(encoded_source).decode('utf-8') == method_source
    assert text == 'Created MyClass>>myMethod'


@with_fixtures(ToolsFixture)
def test_edit_of_existing_class_side_method(fixture):
    fixture.respond_with(
        ok_response(
            {'class': 'MyClass', 'selector': 'new', 'side': 'class', 'wasNew': False}
        )
    )

    text = fixture.call('edit_method', 'MyClass', 'new', 'new\n\t^super new', 'class')

    assert text == 'Updated MyClass>>new (class side)'


@with_fixtures(ToolsFixture)
def test_undo_edit(fixture):
    fixture.respond_with(
        ok_response({'class': 'MyClass', 'selector': 'myMethod', 'side': 'instance'})
    )

    text = fixture.call('undo_edit', 'MyClass', 'myMethod')

    assert fixture.sent_commands == ['UNDO MyClass myMethod instance']
    assert text == 'Restored MyClass>>myMethod'


@with_fixtures(ToolsFixture)
def test_create_class_sends_the_definition_as_base64_json(fixture):
    fixture.respond_with(
        ok_response(
            {'name': 'Person', 'superclass': 'Object', 'category': 'People'}
        )
    )

    text = fixture.call(
        'create_class',
        'Person',
        instance_variables=['name', 'age'],
        category='People',
    )

    verb, encoded_definition = fixture.sent_commands[0].split(' ')
    assert verb == 'CREATECLASS'
    assert json.loads(base64.b64decode(encoded_definition)) == {
        'name': 'Person',
        'superclass': 'Object',
        'instanceVariables': ['name', 'age'],
        'classVariables': [],
        'classInstanceVariables': [],
        'category': 'People',
    }
    assert text == "Created class Person < Object in category 'People'"


@with_fixtures(ToolsFixture)
def test_create_class_validates_variable_names(fixture):
    text = fixture.call('create_class', 'Person', instance_variables=['full name'])

    assert text.startswith('Validation error: Variable name full name')
    assert fixture.sent_commands == []


@with_fixtures(ToolsFixture)
def test_list_images_shows_auth_and_default(fixture):
    assert fixture.call('list_images') == (
        'dev: localhost:9999 (default)\nprod: prod.local:9998 [auth]'
    )


@with_fixtures(ReadOnlyToolsFixture)
def test_read_only_server_refuses_to_evaluate_or_edit(fixture):
    assert fixture.call('eval_smalltalk', '3 + 4') == (
        'eval_smalltalk is disabled. '
        'Start clibridge-mcp without --read-only to enable.'
    )
    assert fixture.call('edit_method', 'MyClass', 'foo', 'foo ^1').startswith(
        'edit_method is disabled.'
    )
    assert fixture.call('undo_edit', 'MyClass', 'foo').startswith(
        'undo_edit is disabled.'
    )
    assert fixture.call('create_class', 'Person').startswith(
        'create_class is disabled.'
    )
    assert fixture.sent_commands == []


@with_fixtures(ReadOnlyToolsFixture)
def test_read_only_server_still_browses(fixture):
    fixture.respond_with(ok_response(['Smalltalk', 'Core']))

    assert fixture.call('namespaces') == 'Smalltalk\nCore'


@with_fixtures(ToolsFixture)
def test_edit_method_rejects_source_that_cannot_be_encoded(fixture):
    text = fixture.call('edit_method', 'MyClass', 'foo', 'foo\n\t^\ud800')

    assert text == 'Validation error: Source contains invalid characters'
    assert fixture.sent_commands == []
