"""
Patient identification tool.

Collects search criteria, runs the search, and turns the results into
exactly one record, a numbered choice, or a no-match report.
"""

from typing import Any, Dict, Sequence

from mcp.types import TextContent

from fhir_mcp.elicitation.disambiguation import records_from_bundle
from fhir_mcp.elicitation.orchestrator import has_search_criteria
from fhir_mcp.elicitation.types import IdentificationOutcome, NeedsInput, NoMatches, Ready
from fhir_mcp.fhir_client import FHIRRequestError
from fhir_mcp.logging_utils import get_logger
from . import shared
from .decorators import mcp_tool
from .error_helpers import fhir_request_error, invalid_parameters_error
from .fhir_tools import run_dialogue
from .schemas import PatientIdentifyParams
from .utils import elicitation_response, no_matches_response, success_response
from .validators import validate_params

logger = get_logger(__name__)


def _respond(outcome: IdentificationOutcome) -> Sequence[TextContent]:
    if isinstance(outcome, NoMatches):
        return no_matches_response(outcome)
    if isinstance(outcome, NeedsInput):
        return elicitation_response(outcome)
    payload = outcome.payload
    return success_response({
        "identified": True,
        "resourceType": payload["resourceType"],
        "recordId": payload["recordId"],
        "record": payload["record"],
    })


@mcp_tool("patient_identify", timeout=60.0)
async def handle_patient_identify(arguments: Dict[str, Any]) -> Sequence[TextContent]:
    """Identify exactly one patient, asking the user to choose when several records match"""
    params, error = validate_params("patient_identify", PatientIdentifyParams, arguments)
    if error:
        return error
    args = params.model_dump(exclude_none=True)

    orchestrator = shared.get_orchestrator()
    outcome, error = run_dialogue("patient_identify", orchestrator.identify, args)
    if error:
        return error
    if not isinstance(outcome, Ready) or "record" in outcome.payload:
        return _respond(outcome)

    resource_type = outcome.payload.get("resourceType") or "Patient"
    search_params = outcome.payload.get("searchParams") or {}
    if not has_search_criteria(search_params):
        return invalid_parameters_error(
            "patient_identify",
            "'searchParams' is required when interactive is false",
            param_name="searchParams",
        )

    try:
        bundle = await shared.get_fhir_client().search(resource_type, search_params)
    except FHIRRequestError as e:
        logger.warning(f"patient_identify: {e}")
        return fhir_request_error("patient_identify", e)

    records = records_from_bundle(bundle)
    logger.info(f"patient_identify: {len(records)} {resource_type} candidate(s)")
    outcome, error = run_dialogue(
        "patient_identify",
        lambda _: orchestrator.resolve_candidates(resource_type, records, search_params),
        args,
    )
    if error:
        return error
    return _respond(outcome)
