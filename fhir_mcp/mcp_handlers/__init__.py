"""
MCP Tool Handlers

Handler registry pattern for tool dispatch. Each tool handler is a separate
function registered by the @mcp_tool decorator.
"""

from typing import Any, Callable, Dict, Optional, Sequence

from mcp.types import TextContent

# Import all handlers so their decorators register them
from .fhir_tools import (
    handle_fhir_search,
    handle_fhir_read,
    handle_fhir_create,
    handle_fhir_update,
    handle_fhir_delete,
    handle_fhir_capability,
    handle_fhir_generate_narrative,
)
from .identification import handle_patient_identify
from .admin import handle_get_config, handle_send_feedback

from .utils import error_response, success_response
from .error_helpers import tool_not_found_error
from .decorators import get_tool_registry

from fhir_mcp.logging_utils import get_logger

TOOL_HANDLERS: Dict[str, Callable] = dict(get_tool_registry())

_logger = get_logger(__name__)


async def dispatch_tool(name: str, arguments: Optional[Dict[str, Any]]) -> Sequence[TextContent]:
    """
    Dispatch a tool call to its registered handler.

    Timeout protection and exception conversion happen in the @mcp_tool
    wrapper; unknown names get a fuzzy-matched TOOL_NOT_FOUND error.
    """
    # Some MCP clients send `arguments: null` for no-argument tools
    if arguments is None:
        arguments = {}

    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        _logger.warning(f"Unknown tool requested: {name}")
        return tool_not_found_error(name, list(TOOL_HANDLERS.keys()))

    return await handler(arguments)
