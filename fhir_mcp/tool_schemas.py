"""
Tool Schema Definitions

Single source of truth for MCP tool schemas. The tool list comes from the
handler registry and input schemas are generated from the pydantic parameter
models, so listing, dispatch and validation never drift.
"""

import os
from typing import Any, Dict, List

from mcp.types import Tool

from fhir_mcp.mcp_handlers.decorators import get_tool_description, list_registered_tools
from fhir_mcp.mcp_handlers.schemas import TOOL_PARAM_MODELS

TOOL_DESCRIPTIONS: Dict[str, str] = {
    "fhir_search": """Search FHIR resources by type and parameters.

If no meaningful search parameters are given, the response asks for them
(requiresInput: true). Reply by calling fhir_search again with 'answer' and
the elicitation 'context'.""",
    "fhir_read": """Read a FHIR resource by type and id.

Asks for the id when it is missing.""",
    "fhir_create": """Create a FHIR resource.

Required fields that are missing from 'resource' are requested one at a time.
Resend the accumulated 'resource' with each answer.""",
    "fhir_update": """Replace a FHIR resource by type and id.

Asks for the id, then the replacement resource body, when missing.""",
    "fhir_delete": """Delete a FHIR resource by type and id.

Asks for the id when it is missing.""",
    "fhir_capability": "Fetch the FHIR server CapabilityStatement (GET /metadata).",
    "fhir_generate_narrative": """Generate a human-readable XHTML narrative for a FHIR resource.

Dedicated summaries for Patient, Observation, Encounter, Condition,
MedicationRequest and DiagnosticReport; other types get a generic one.
Styles: clinical, patient-friendly, technical.""",
    "patient_identify": """Identify exactly one patient record.

Collects search criteria, searches, and when several records match returns a
numbered list (candidates). Reply with the chosen number as 'answer', the
elicitation 'context', and the returned pendingArguments.""",
    "get_config": "Show the active FHIR server configuration with secrets redacted.",
    "send_feedback": "Send feedback or log messages to the server log.",
}


def _strip_schema_descriptions(node: Any) -> Any:
    if isinstance(node, dict):
        return {k: _strip_schema_descriptions(v) for k, v in node.items() if k != "description"}
    if isinstance(node, list):
        return [_strip_schema_descriptions(x) for x in node]
    return node


def input_schema(tool_name: str) -> Dict[str, Any]:
    schema = TOOL_PARAM_MODELS[tool_name].model_json_schema()
    schema.pop("title", None)
    schema.setdefault("properties", {})
    for prop in schema["properties"].values():
        prop.pop("title", None)
    return schema


def get_tool_definitions() -> List[Tool]:
    """
    Get MCP tool definitions.

    Set FHIR_MCP_TOOL_SCHEMA_STRIP_FIELD_DESCRIPTIONS=1 to remove nested
    `description` keys from inputSchema.
    """
    strip_field_descriptions = os.getenv(
        "FHIR_MCP_TOOL_SCHEMA_STRIP_FIELD_DESCRIPTIONS", "0"
    ).strip().lower() in ("1", "true", "yes")

    tools = []
    for name in list_registered_tools():
        schema = input_schema(name)
        if strip_field_descriptions:
            schema = _strip_schema_descriptions(schema)
        description = TOOL_DESCRIPTIONS.get(name) or get_tool_description(name)
        tools.append(Tool(name=name, description=description, inputSchema=schema))
    return tools
