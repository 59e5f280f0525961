"""
Admin tools: configuration view and feedback logging.
"""

import json
import logging
from typing import Any, Dict, Sequence

from mcp.types import TextContent

from fhir_mcp.logging_utils import get_logger
from . import shared
from .decorators import mcp_tool
from .schemas import GetConfigParams, SendFeedbackParams
from .utils import success_response
from .validators import validate_params

logger = get_logger(__name__)

FEEDBACK_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@mcp_tool("get_config", timeout=10.0)
async def handle_get_config(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Show the active FHIR server configuration with secrets redacted"""
    _, error = validate_params("get_config", GetConfigParams, arguments)
    if error:
        return error
    view = shared.get_config().public_view()
    view["serverVersion"] = shared.SERVER_VERSION
    return success_response({"config": view})


@mcp_tool("send_feedback", timeout=10.0)
async def handle_send_feedback(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Send feedback or log messages to the server log"""
    params, error = validate_params("send_feedback", SendFeedbackParams, arguments)
    if error:
        return error

    message = params.message
    if params.context:
        message = f"{message}\nContext: {json.dumps(params.context, indent=2, default=str)}"
    logger.log(FEEDBACK_LEVELS[params.level], f"[feedback] {message}")

    return success_response({
        "message": f"Feedback logged: {params.message}",
        "level": params.level,
    })
