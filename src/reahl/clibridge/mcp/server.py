SERVER_NAME = 'CliBridgeMCP'


class McpDependencyNotInstalled(Exception):
    pass


def import_fast_mcp():
    try:
        from mcp.server.fastmcp import FastMCP
    except ModuleNotFoundError as module_not_found_error:
        raise McpDependencyNotInstalled(
            'CliBridgeMCP requires the mcp package. '
            'Install with: pip install reahl-clibridge'
        ) from module_not_found_error
    return FastMCP


def import_tool_registration():
    from reahl.clibridge.mcp.tools import register_tools

    return register_tools


def create_server(read_only=False):
    fast_mcp = import_fast_mcp()
    register_tools = import_tool_registration()
    mcp_server = fast_mcp(SERVER_NAME)
    register_tools(mcp_server, read_only=read_only)
    return mcp_server
