"""
Standard error builders for MCP handlers.

Every builder returns a ready-to-send Sequence[TextContent] with an error
code and recovery guidance.
"""

import difflib
from typing import Any, Dict, Optional, Sequence

from mcp.types import TextContent

from fhir_mcp.elicitation.types import OrchestratorInvariantViolation
from fhir_mcp.fhir_client import FHIRRequestError
from .utils import error_response


RECOVERY_PATTERNS = {
    "invalid_parameters": {
        "action": "Check tool parameters and try again",
        "related_tools": ["get_config"],
        "workflow": [
            "1. Verify tool parameters match the tool's input schema",
            "2. When answering an elicitation, echo its 'context' string unchanged",
            "3. Retry with correct parameters",
        ],
    },
    "fhir_request_failed": {
        "action": "Check the FHIR server address, credentials and the request payload",
        "related_tools": ["get_config", "fhir_capability"],
        "workflow": [
            "1. Call get_config to confirm the FHIR server URL and auth type",
            "2. Call fhir_capability to confirm the server supports the interaction",
            "3. Review the diagnostics and retry",
        ],
    },
    "orchestrator_invariant_violation": {
        "action": "This is a server defect. Retry once, then report it with send_feedback",
        "related_tools": ["send_feedback"],
        "workflow": [
            "1. Retry the same call",
            "2. If it fails again, report the error details with send_feedback",
        ],
    },
    "timeout": {
        "action": "The FHIR server may be slow or unreachable. Try again with narrower parameters.",
        "related_tools": ["fhir_capability", "get_config"],
        "workflow": [
            "1. Wait a few seconds and retry",
            "2. Narrow search parameters",
            "3. Check server reachability with fhir_capability",
        ],
    },
}


def invalid_parameters_error(
    tool_name: str,
    details: Optional[str] = None,
    param_name: Optional[str] = None,
) -> Sequence[TextContent]:
    """Standard error for invalid parameters"""
    message = f"Invalid parameters for tool '{tool_name}'"
    if details:
        message += f": {details}"

    error_details = {"error_type": "invalid_parameters", "tool_name": tool_name}
    if param_name:
        error_details["param_name"] = param_name

    return [error_response(
        message,
        error_code="INVALID_PARAMETERS",
        details=error_details,
        recovery=RECOVERY_PATTERNS["invalid_parameters"],
        context={"tool_name": tool_name, "details": details, "param_name": param_name},
    )]


def fhir_request_error(tool_name: str, error: FHIRRequestError) -> Sequence[TextContent]:
    """Standard error for a failed FHIR interaction"""
    return [error_response(
        str(error),
        error_code="FHIR_REQUEST_FAILED",
        details={"error_type": "fhir_request_failed", "tool_name": tool_name, **error.to_dict()},
        recovery=RECOVERY_PATTERNS["fhir_request_failed"],
    )]


def invariant_violation_error(tool_name: str, error: OrchestratorInvariantViolation) -> Sequence[TextContent]:
    """Internal defect: the dialogue produced neither a request nor a payload"""
    return [error_response(
        str(error),
        error_code="ORCHESTRATOR_INVARIANT_VIOLATION",
        details={"error_type": "orchestrator_invariant_violation", "tool_name": tool_name},
        recovery=RECOVERY_PATTERNS["orchestrator_invariant_violation"],
        context={"state": error.to_dict()},
    )]


def timeout_error(tool_name: str, timeout: float) -> Sequence[TextContent]:
    """Standard error for timeout"""
    return [error_response(
        f"Tool '{tool_name}' timed out after {timeout} seconds.",
        error_code="TIMEOUT",
        details={"error_type": "timeout", "tool_name": tool_name, "timeout_seconds": timeout},
        recovery=RECOVERY_PATTERNS["timeout"],
    )]


def tool_not_found_error(
    tool_name: str,
    available_tools: list,
    context: Optional[Dict[str, Any]] = None,
) -> Sequence[TextContent]:
    """
    Unknown tool, with fuzzy suggestions from difflib.
    """
    similar = difflib.get_close_matches(tool_name, available_tools, n=3, cutoff=0.4)

    if similar:
        suggestions_str = ", ".join(f"'{s}'" for s in similar)
        message = f"Tool '{tool_name}' not found. Did you mean: {suggestions_str}?"
    else:
        message = f"Tool '{tool_name}' not found."

    return [error_response(
        message,
        error_code="TOOL_NOT_FOUND",
        details={
            "error_type": "tool_not_found",
            "requested_tool": tool_name,
            "similar_tools": similar,
            "total_available": len(available_tools),
        },
        recovery={
            "action": "Check the tool name, or try a suggested alternative",
            "suggestions": similar,
            "available_tools": sorted(available_tools),
        },
        context=context or {},
    )]
