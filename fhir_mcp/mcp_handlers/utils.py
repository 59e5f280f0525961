"""
Common utilities for MCP tool handlers.
"""

import json
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from mcp.types import TextContent

from fhir_mcp.elicitation.types import NeedsInput, NoMatches
from fhir_mcp.logging_utils import get_logger

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 500


def error_response(
    message: str,
    details: Optional[Dict[str, Any]] = None,
    recovery: Optional[Dict[str, Any]] = None,
    context: Optional[Dict[str, Any]] = None,
    error_code: Optional[str] = None,
) -> TextContent:
    """
    Create an error response with optional recovery guidance and context.

    Args:
        message: Error message (will be sanitized)
        details: Optional additional error details, merged into the top level
        recovery: Optional recovery suggestions for the calling agent
        context: Optional context (what was happening when the error occurred)
        error_code: Optional machine-readable error code (e.g., "INVALID_PARAMETERS")

    Example:
        >>> error_response(
        ...     "Resource type is required",
        ...     error_code="INVALID_PARAMETERS",
        ...     recovery={"action": "Pass resourceType"}
        ... )
    """
    response: Dict[str, Any] = {
        "success": False,
        "error": _sanitize_error_message(message),
    }

    if error_code:
        response["error_code"] = error_code

    if details:
        for key, value in details.items():
            response[key] = _sanitize_error_message(value) if isinstance(value, str) else value

    if recovery:
        response["recovery"] = recovery

    if context:
        response["context"] = context

    return TextContent(type="text", text=json.dumps(_make_json_serializable(response), indent=2))


def _sanitize_error_message(message: str) -> str:
    """
    Strip file paths, line numbers and tracebacks, and cap the length.
    """
    if not isinstance(message, str):
        return str(message)

    message = re.sub(r'Traceback.*?File', 'Error in', message, flags=re.DOTALL)
    message = re.sub(r'File "[^"]+", line \d+', 'Internal error', message)
    message = re.sub(r'(?<![\w:/])/(?:[\w.\-]+/)+([\w.\-]+\.py)', r'\1', message)
    message = re.sub(r'line \d+', 'line N', message)

    if len(message) > MAX_ERROR_MESSAGE_LENGTH:
        message = message[:MAX_ERROR_MESSAGE_LENGTH] + "..."
    return message


def _make_json_serializable(obj: Any) -> Any:
    """
    Recursively convert values json.dumps cannot handle.

    datetime/date -> ISO string, Enum -> value, tuple/set -> list,
    anything else unknown -> str.
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(key): _make_json_serializable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_make_json_serializable(item) for item in obj]
    return str(obj)


def success_response(data: Dict[str, Any]) -> Sequence[TextContent]:
    """
    Create a success response.

    Args:
        data: Response data (will have "success": True added)
    """
    response = {"success": True, **data}
    json_text = json.dumps(_make_json_serializable(response), ensure_ascii=False)
    return [TextContent(type="text", text=json_text)]


def elicitation_instructions(outcome: NeedsInput) -> str:
    if outcome.candidates is not None:
        return (
            "Multiple matching records were found. Ask the user to choose one by number, "
            "then call this tool again with pendingArguments plus 'answer' (the chosen "
            "number) and 'context' (elicitation.context)."
        )
    return (
        "More information is needed. Ask the user the elicitation prompt, then call this "
        "tool again with pendingArguments plus 'answer' (the user's reply) and "
        "'context' (elicitation.context)."
    )


def elicitation_response(outcome: NeedsInput) -> Sequence[TextContent]:
    """Wire form of a NeedsInput outcome."""
    data: Dict[str, Any] = {
        "requiresInput": True,
        "elicitation": outcome.request.to_dict(),
        "instructions": elicitation_instructions(outcome),
        "pendingArguments": outcome.pending,
    }
    if outcome.errors:
        data["validationErrors"] = list(outcome.errors)
    if outcome.candidates is not None:
        data["multipleMatches"] = outcome.multiple_matches
        data["candidates"] = [candidate.to_dict() for candidate in outcome.candidates]
    return success_response(data)


def no_matches_response(outcome: NoMatches) -> Sequence[TextContent]:
    return success_response({
        "noMatches": True,
        "matchCount": 0,
        "resourceType": outcome.resource_type,
        "searchParams": outcome.search_params,
        "message": f"No {outcome.resource_type} records matched the search criteria.",
    })
