"""Pydantic parameter models for each MCP tool."""

from .admin import GetConfigParams, SendFeedbackParams
from .fhir import (
    CapabilityParams,
    CreateParams,
    DeleteParams,
    GenerateNarrativeParams,
    PatientIdentifyParams,
    ReadParams,
    SearchParams,
    UpdateParams,
)

TOOL_PARAM_MODELS = {
    "fhir_search": SearchParams,
    "fhir_read": ReadParams,
    "fhir_create": CreateParams,
    "fhir_update": UpdateParams,
    "fhir_delete": DeleteParams,
    "fhir_capability": CapabilityParams,
    "fhir_generate_narrative": GenerateNarrativeParams,
    "patient_identify": PatientIdentifyParams,
    "get_config": GetConfigParams,
    "send_feedback": SendFeedbackParams,
}
