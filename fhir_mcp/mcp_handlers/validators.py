"""
Parameter validation for tool handlers.

Arguments are parsed with the tool's pydantic model before any dialogue
logic runs, so handlers only ever see well-typed values.
"""

from typing import Any, Dict, Optional, Sequence, Tuple, Type

from mcp.types import TextContent
from pydantic import BaseModel, ValidationError

from .error_helpers import invalid_parameters_error


def format_validation_error(error: ValidationError) -> Tuple[str, Optional[str]]:
    """First pydantic error as (message, parameter name)."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    if location:
        return f"{location}: {message}", location
    return message, None


def validate_params(
    tool_name: str,
    model: Type[BaseModel],
    arguments: Optional[Dict[str, Any]],
) -> Tuple[Optional[BaseModel], Optional[Sequence[TextContent]]]:
    """
    Parse arguments with a pydantic model.

    Returns (params, None) on success or (None, error_response) on failure.
    """
    try:
        return model.model_validate(arguments or {}), None
    except ValidationError as e:
        message, param_name = format_validation_error(e)
        return None, invalid_parameters_error(tool_name, message, param_name=param_name)
