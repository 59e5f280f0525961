"""
MCP Tool Decorators - Auto-registration and utilities

Reduces boilerplate and enables auto-discovery of tools.
"""

import asyncio
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from mcp.types import TextContent

from fhir_mcp.logging_utils import get_logger
from .error_helpers import timeout_error
from .utils import error_response

logger = get_logger(__name__)


# --- Unified Tool Registry ---

@dataclass
class ToolDefinition:
    """Single source of truth for a registered MCP tool."""
    name: str
    handler: Callable
    description: str = ""

_TOOL_DEFINITIONS: Dict[str, ToolDefinition] = {}


def mcp_tool(
    name: Optional[str] = None,
    timeout: float = 30.0,
    description: Optional[str] = None,
):
    """
    Decorator for MCP tool handlers with auto-registration and timeout protection.

    Provides:
    - Timeout protection via asyncio.wait_for
    - A warning log when a call uses more than 80% of its timeout
    - Conversion of unexpected exceptions into error responses
    - Registration for dispatch and discovery

    Usage:
        @mcp_tool("fhir_search", timeout=60.0)
        async def handle_fhir_search(arguments: Dict[str, Any]) -> Sequence[TextContent]:
            ...

    Args:
        name: Tool name (defaults to function name without 'handle_' prefix)
        timeout: Timeout in seconds (default: 30.0)
        description: Tool description (defaults to the first docstring line)
    """
    def decorator(func: Callable) -> Callable:
        tool_name = name or func.__name__.replace('handle_', '')
        tool_description = description or (func.__doc__ and func.__doc__.strip().split('\n')[0].strip()) or ""

        @wraps(func)
        async def wrapper(arguments: Dict[str, Any]):
            start_time = time.time()
            try:
                result = await asyncio.wait_for(func(arguments), timeout=timeout)
                elapsed = time.time() - start_time
                if elapsed > timeout * 0.8:
                    logger.warning(
                        f"Tool '{tool_name}' took {elapsed:.2f}s "
                        f"({elapsed/timeout*100:.1f}% of {timeout}s timeout)"
                    )
                # The MCP SDK calls list() on the return value; a bare
                # TextContent would be destructured into field tuples.
                if isinstance(result, TextContent):
                    result = [result]
                return result
            except asyncio.TimeoutError:
                logger.warning(f"Tool '{tool_name}' timed out after {timeout}s")
                return timeout_error(tool_name, timeout)
            except Exception as e:
                logger.error(f"Tool '{tool_name}' error: {e}", exc_info=True)
                return [error_response(
                    f"Error executing tool '{tool_name}': {str(e)}",
                    error_code="SYSTEM_ERROR",
                    recovery={
                        "action": "Check tool parameters and try again",
                        "related_tools": ["get_config"],
                    },
                )]

        _TOOL_DEFINITIONS[tool_name] = ToolDefinition(
            name=tool_name,
            handler=wrapper,
            description=tool_description,
        )

        return wrapper
    return decorator


def get_tool_registry() -> Dict[str, Callable]:
    """Get the registered tool handlers."""
    return {name: td.handler for name, td in _TOOL_DEFINITIONS.items()}


def get_tool_description(tool_name: str) -> str:
    td = _TOOL_DEFINITIONS.get(tool_name)
    return td.description if td else ""


def list_registered_tools() -> List[str]:
    """List all registered tool names, sorted."""
    return sorted(_TOOL_DEFINITIONS)
