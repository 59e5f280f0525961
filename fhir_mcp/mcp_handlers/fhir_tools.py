"""
FHIR interaction tools: search, read, create, update, delete, capability,
narrative.

Each interactive call first runs through the dialogue orchestrator. Only a
Ready outcome reaches the FHIR server; anything else goes back to the caller
as an elicitation. Created resources without a `text` element get a generated
narrative.
"""

from typing import Any, Callable, Dict, Sequence, Type

from mcp.types import TextContent
from pydantic import BaseModel

from fhir_mcp.elicitation.completeness import is_empty
from fhir_mcp.elicitation.types import (
    DialogueOutcome,
    ElicitationProtocolError,
    NeedsInput,
    OrchestratorInvariantViolation,
)
from fhir_mcp import narrative
from fhir_mcp.fhir_client import FHIROperation, FHIRRequestError
from fhir_mcp.logging_utils import get_logger
from . import shared
from .decorators import mcp_tool
from .error_helpers import fhir_request_error, invalid_parameters_error, invariant_violation_error
from .schemas import (
    CapabilityParams,
    CreateParams,
    DeleteParams,
    GenerateNarrativeParams,
    ReadParams,
    SearchParams,
    UpdateParams,
)
from .utils import elicitation_response, success_response
from .validators import validate_params

logger = get_logger(__name__)

# Payload keys each interaction cannot run without
REQUIRED_PAYLOAD = {
    FHIROperation.SEARCH: (),
    FHIROperation.READ: ("id",),
    FHIROperation.CREATE: ("resource",),
    FHIROperation.UPDATE: ("id", "resource"),
    FHIROperation.DELETE: ("id",),
}


def run_dialogue(
    tool_name: str,
    step: Callable[[Dict[str, Any]], DialogueOutcome],
    args: Dict[str, Any],
):
    """
    Run one orchestrator step, mapping its errors to responses.

    Returns (outcome, None) or (None, error_response).
    """
    try:
        return step(args), None
    except ElicitationProtocolError as e:
        return None, invalid_parameters_error(tool_name, str(e), param_name=e.param_name)
    except OrchestratorInvariantViolation as e:
        logger.error(f"{tool_name}: {e}")
        return None, invariant_violation_error(tool_name, e)


async def _interaction(
    tool_name: str,
    operation: FHIROperation,
    model: Type[BaseModel],
    step: Callable[[Dict[str, Any]], DialogueOutcome],
    arguments: Dict[str, Any],
) -> Sequence[TextContent]:
    params, error = validate_params(tool_name, model, arguments)
    if error:
        return error
    args = params.model_dump(exclude_none=True)

    outcome, error = run_dialogue(tool_name, step, args)
    if error:
        return error
    if isinstance(outcome, NeedsInput):
        logger.debug(f"{tool_name}: needs input ({outcome.request.context})")
        return elicitation_response(outcome)

    payload = outcome.payload
    missing = [key for key in REQUIRED_PAYLOAD[operation] if is_empty(payload.get(key))]
    if missing:
        return invalid_parameters_error(
            tool_name,
            f"'{missing[0]}' is required when interactive is false",
            param_name=missing[0],
        )

    resource_type = payload["resourceType"]
    if operation is FHIROperation.CREATE:
        payload = {**payload, "resource": narrative.with_narrative(resource_type, payload["resource"])}
    try:
        result = await shared.get_fhir_client().execute(operation, resource_type, payload)
    except FHIRRequestError as e:
        logger.warning(f"{tool_name}: {e}")
        return fhir_request_error(tool_name, e)

    logger.info(f"{tool_name}: {operation.value} {resource_type} completed")
    return success_response({
        "operation": operation.value,
        "resourceType": resource_type,
        "result": result,
    })


@mcp_tool("fhir_search", timeout=60.0)
async def handle_fhir_search(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Search FHIR resources by type and parameters, asking for criteria when none are given"""
    return await _interaction(
        "fhir_search", FHIROperation.SEARCH, SearchParams,
        shared.get_orchestrator().search, arguments,
    )


@mcp_tool("fhir_read", timeout=30.0)
async def handle_fhir_read(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Read a FHIR resource by type and id"""
    return await _interaction(
        "fhir_read", FHIROperation.READ, ReadParams,
        shared.get_orchestrator().read, arguments,
    )


@mcp_tool("fhir_create", timeout=30.0)
async def handle_fhir_create(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Create a FHIR resource, asking for each missing required field in turn"""
    return await _interaction(
        "fhir_create", FHIROperation.CREATE, CreateParams,
        shared.get_orchestrator().create, arguments,
    )


@mcp_tool("fhir_update", timeout=30.0)
async def handle_fhir_update(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Replace a FHIR resource by type and id"""
    return await _interaction(
        "fhir_update", FHIROperation.UPDATE, UpdateParams,
        shared.get_orchestrator().update, arguments,
    )


@mcp_tool("fhir_delete", timeout=30.0)
async def handle_fhir_delete(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Delete a FHIR resource by type and id"""
    return await _interaction(
        "fhir_delete", FHIROperation.DELETE, DeleteParams,
        shared.get_orchestrator().delete, arguments,
    )


@mcp_tool("fhir_capability", timeout=30.0)
async def handle_fhir_capability(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Fetch the FHIR server CapabilityStatement"""
    _, error = validate_params("fhir_capability", CapabilityParams, arguments)
    if error:
        return error
    try:
        result = await shared.get_fhir_client().capabilities()
    except FHIRRequestError as e:
        logger.warning(f"fhir_capability: {e}")
        return fhir_request_error("fhir_capability", e)
    return success_response({"operation": FHIROperation.CAPABILITIES.value, "result": result})


@mcp_tool("fhir_generate_narrative", timeout=10.0)
async def handle_fhir_generate_narrative(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Render a human-readable narrative for a FHIR resource"""
    params, error = validate_params("fhir_generate_narrative", GenerateNarrativeParams, arguments)
    if error:
        return error
    div = narrative.generate(params.resourceType, params.resource, params.style)
    return success_response({
        "resourceType": params.resourceType,
        "style": params.style,
        "narrative": {"status": "generated", "div": div},
    })
