import json


def rendered_value(value):
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def format_response(response):
    if response.get('status') == 'error':
        return 'Error: %s' % (response.get('message') or 'Unknown error')
    data = response.get('data')
    if data is None:
        return 'No data returned'
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        return '\n'.join(rendered_value(item) for item in data)
    if isinstance(data, dict):
        return json.dumps(data, indent=2)
    return rendered_value(data)


def validation_error_text(validation_result):
    return 'Validation error: %s' % validation_result.error


def joined_or_none(names):
    return ', '.join(names or []) or '(none)'


def indented_lines(items):
    return ['  %s' % item for item in items]


def side_label(side):
    return ' (class side)' if side == 'class' else ''


def ping_text(server):
    return "Connected to CliBridge '%s' at %s" % (server.name, server.address)


def class_info_text(class_info):
    lines = [
        'Class: %s' % (class_info.get('name') or 'Unknown'),
        'Superclass: %s' % (class_info.get('superclass') or 'Unknown'),
        'Instance Variables: %s'
        % joined_or_none(class_info.get('instanceVariables')),
        'Class Variables: %s' % joined_or_none(class_info.get('classVariables')),
        'Category: %s' % (class_info.get('category') or '(none)'),
    ]
    if class_info.get('comment'):
        lines.append('Comment: %s' % class_info['comment'])
    return '\n'.join(lines)


def hierarchy_text(hierarchy):
    subclasses = hierarchy.get('subclasses') or []
    lines = [
        'Class: %s' % (hierarchy.get('class') or 'Unknown'),
        '',
        'Superclasses (ancestors):',
        *indented_lines(hierarchy.get('superclasses') or []),
        '',
        'Direct Subclasses:',
        *(indented_lines(subclasses) if subclasses else ['  (none)']),
    ]
    return '\n'.join(lines)


def eval_text(evaluation):
    return '%s (%s)' % (evaluation.get('result'), evaluation.get('class'))


def search_match_text(match):
    if match.get('type') == 'class':
        return '[class] %s' % match.get('name')
    if match.get('type') == 'method':
        return '[method] %s >> %s' % (match.get('class'), match.get('selector'))
    return '[%s] %s' % (match.get('type'), json.dumps(match))


def search_text(matches):
    if not matches:
        return 'No matches found'
    return '\n'.join(search_match_text(match) for match in matches)


def senders_text(selector, senders):
    if not senders:
        return 'No senders of #%s found' % selector
    lines = ['Senders of #%s (%s found):' % (selector, len(senders))]
    for sender in senders:
        lines.append('  %s >> %s' % (sender.get('class'), sender.get('selector')))
    return '\n'.join(lines)


def implementors_text(selector, implementors):
    if not implementors:
        return 'No implementors of #%s found' % selector
    lines = ['Implementors of #%s (%s found):' % (selector, len(implementors))]
    for implementor in implementors:
        if implementor.get('side') == 'class':
            lines.append('  %s class >> %s' % (implementor.get('class'), selector))
        else:
            lines.append('  %s >> %s' % (implementor.get('class'), selector))
    return '\n'.join(lines)


def messages_text(method_messages):
    lines = [
        'Method: %s >> %s'
        % (method_messages.get('class'), method_messages.get('selector')),
        '',
        'Messages sent:',
        *['  #%s' % message for message in method_messages.get('messages') or []],
        '',
        'Literals referenced:',
        *indented_lines(method_messages.get('literals') or []),
    ]
    return '\n'.join(lines)


def edit_text(edit_outcome):
    action = 'Created' if edit_outcome.get('wasNew') else 'Updated'
    return '%s %s>>%s%s' % (
        action,
        edit_outcome.get('class'),
        edit_outcome.get('selector'),
        side_label(edit_outcome.get('side')),
    )


def undo_text(undo_outcome):
    return 'Restored %s>>%s%s' % (
        undo_outcome.get('class'),
        undo_outcome.get('selector'),
        side_label(undo_outcome.get('side')),
    )


def create_class_text(created_class):
    return "Created class %s < %s in category '%s'" % (
        created_class.get('name'),
        created_class.get('superclass'),
        created_class.get('category'),
    )


def server_listing_text(configuration):
    lines = []
    for server_name in configuration.server_names():
        server = configuration.server_named(server_name)
        auth_label = ' [auth]' if server.has_api_key else ''
        default_label = ' (default)' if configuration.is_default(server_name) else ''
        lines.append(
            '%s: %s%s%s' % (server_name, server.address, auth_label, default_label)
        )
    return '\n'.join(lines)
