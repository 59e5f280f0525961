"""
Completeness Resolver

Finds the next required-but-missing field of a partial resource and builds the
elicitation request for it. Only presence is checked here; value validity is
the field validator's concern.
"""

from typing import Any, Dict, List, Optional, Sequence

from fhir_mcp.prompts import PromptCatalog
from . import schema_registry
from .types import ElicitationContext, ElicitationRequest, FieldSpec


def is_empty(value: Any) -> bool:
    """None, blank strings, and empty containers all count as missing."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _field_missing(spec: FieldSpec, partial: Dict[str, Any]) -> bool:
    if spec.name == schema_registry.WHOLE_RESOURCE_FIELD:
        body = {k: v for k, v in partial.items() if k != "resourceType"}
        return all(is_empty(v) for v in body.values())
    return is_empty(partial.get(spec.name))


def missing_fields(resource_type: str, partial: Optional[Dict[str, Any]]) -> List[FieldSpec]:
    """All required fields still missing, in registry order."""
    partial = partial or {}
    return [
        spec for spec in schema_registry.fields_for(resource_type)
        if spec.required and _field_missing(spec, partial)
    ]


def next_missing_field(resource_type: str, partial: Optional[Dict[str, Any]]) -> Optional[FieldSpec]:
    """First required field that is absent or empty, or None when complete."""
    partial = partial or {}
    for spec in schema_registry.fields_for(resource_type):
        if spec.required and _field_missing(spec, partial):
            return spec
    return None


def is_complete(resource_type: str, partial: Optional[Dict[str, Any]]) -> bool:
    return next_missing_field(resource_type, partial) is None


def field_context(tool: str, field_name: str) -> str:
    return f"{tool} - {field_name} elicitation"


def build_field_elicitation(
    context: ElicitationContext,
    spec: FieldSpec,
    catalog: PromptCatalog,
    errors: Sequence[str] = (),
) -> ElicitationRequest:
    """
    Build the request for one field.

    When errors are given (a rejected answer), they lead the prompt so the
    caller sees why the same field is being asked again.
    """
    resource_part = f" for {context.resource_type}" if context.resource_type else ""
    workflow_part = f" during {context.workflow}" if context.workflow else ""

    base_prompt = catalog.clinical_context(context.resource_type, context.workflow, context.user_type)

    lines = []
    if errors:
        lines.append("The previous answer was not accepted:")
        lines.extend(f"- {error}" for error in errors)
        lines.append("")
    lines.append(f"Please provide the {spec.name}{resource_part}{workflow_part}.")
    lines.append("")
    lines.append(f"Field: {spec.name}")
    lines.append(f"Type: {spec.shape.value}")
    lines.append(f"Required: {'Yes' if spec.required else 'No'}")
    if spec.description:
        lines.append(f"Description: {spec.description}")
    if spec.constraints.enum:
        lines.append(f"Allowed values: {', '.join(spec.constraints.enum)}")

    field_block = "\n".join(lines)
    prompt = f"{base_prompt}\n\n{field_block}" if base_prompt else field_block

    examples = list(spec.examples)
    if not examples and spec.name == schema_registry.WHOLE_RESOURCE_FIELD and context.resource_type:
        examples = list(schema_registry.resource_examples(context.resource_type))

    return ElicitationRequest(
        prompt=prompt,
        context=field_context(context.tool, spec.name),
        required=spec.required,
        shape=spec.shape,
        constraints=spec.constraints,
        examples=examples,
    )
