"""
Resource templates.

Parameterized MCP resource URIs over the prompt catalog and the schema
registry. A concrete URI is matched against each template in order, its
parameters are checked, and the resource is rendered on demand.
"""

import json
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from fhir_mcp.elicitation import schema_registry
from fhir_mcp.prompts import PromptCatalog

_PARAM = re.compile(r"\{(\w+)\}")


class TemplateResourceError(ValueError):
    """A URI matched a template but cannot be rendered."""


@dataclass(frozen=True)
class TemplateParameter:
    name: str
    description: str
    enum: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class ResourceTemplate:
    uri: str
    name: str
    description: str
    mime_type: str
    parameters: Tuple[TemplateParameter, ...]

    @property
    def pattern(self) -> "re.Pattern[str]":
        parts = []
        position = 0
        for match in _PARAM.finditer(self.uri):
            parts.append(re.escape(self.uri[position:match.start()]))
            parts.append(f"(?P<{match.group(1)}>[^/]+)")
            position = match.end()
        parts.append(re.escape(self.uri[position:]))
        return re.compile("".join(parts))

    def match(self, uri: str) -> Optional[Dict[str, str]]:
        found = self.pattern.fullmatch(uri)
        return found.groupdict() if found else None

    def validate(self, params: Dict[str, str]) -> List[str]:
        errors = []
        for parameter in self.parameters:
            value = params.get(parameter.name)
            if not value:
                errors.append(f"Required parameter missing: {parameter.name}")
            elif parameter.enum and value not in parameter.enum:
                errors.append(
                    f"Invalid value for {parameter.name}. Must be one of: {', '.join(parameter.enum)}"
                )
        return errors


RESOURCE_PROMPT = ResourceTemplate(
    uri="prompt://fhir/resource/{resourceType}",
    name="FHIR Resource-Specific Prompt",
    description="Clinical guidance prompt for one FHIR resource type",
    mime_type="text/plain",
    parameters=(
        TemplateParameter("resourceType", "FHIR resource type (Patient, Observation, Condition, ...)"),
    ),
)

CATEGORY_PROMPT = ResourceTemplate(
    uri="prompt://fhir/{category}/{promptId}",
    name="FHIR Prompt by Category",
    description="A catalog prompt addressed by category and prompt id",
    mime_type="text/plain",
    parameters=(
        TemplateParameter("category", "Prompt category", enum=("clinical", "workflow", "audience")),
        TemplateParameter("promptId", "Prompt identifier within the category"),
    ),
)

WORKFLOW_CONTEXT = ResourceTemplate(
    uri="context://fhir/{workflow}/{userType}",
    name="FHIR Workflow Context",
    description="Composed clinical context for a healthcare workflow and audience",
    mime_type="application/json",
    parameters=(
        TemplateParameter("workflow", "Healthcare workflow",
                          enum=("admission", "discharge", "patient-identification")),
        TemplateParameter("userType", "Audience of the prompt", enum=("clinical", "technical")),
    ),
)

SEARCH_EXAMPLES = ResourceTemplate(
    uri="examples://fhir/{resourceType}/search",
    name="FHIR Search Examples",
    description="Search parameter examples for a FHIR resource type",
    mime_type="text/plain",
    parameters=(
        TemplateParameter("resourceType", "FHIR resource type for search examples"),
    ),
)

# Matched in order; the resource prompt shadows the category prompt
TEMPLATES: Tuple[ResourceTemplate, ...] = (RESOURCE_PROMPT, CATEGORY_PROMPT, WORKFLOW_CONTEXT, SEARCH_EXAMPLES)


def match_uri(uri: str) -> Optional[Tuple[ResourceTemplate, Dict[str, str]]]:
    for template in TEMPLATES:
        params = template.match(uri)
        if params is not None:
            return template, params
    return None


def render(template: ResourceTemplate, params: Dict[str, str], catalog: PromptCatalog) -> str:
    """Render a matched template. Raises TemplateResourceError."""
    errors = template.validate(params)
    if errors:
        raise TemplateResourceError("; ".join(errors))

    if template is RESOURCE_PROMPT:
        resource_type = params["resourceType"]
        matches = catalog.by_resource_type(resource_type)
        if not matches:
            raise TemplateResourceError(f"No prompt for resource type: {resource_type}")
        return catalog.get(matches[0].id, {"resourceType": resource_type})

    if template is CATEGORY_PROMPT:
        prompt = catalog.find(params["promptId"])
        if prompt is None or params["category"] not in prompt.tags:
            raise TemplateResourceError(
                f"No prompt '{params['promptId']}' in category '{params['category']}'"
            )
        return catalog.get(prompt.id)

    if template is WORKFLOW_CONTEXT:
        return json.dumps({
            "workflow": params["workflow"],
            "userType": params["userType"],
            "prompt": catalog.clinical_context(workflow=params["workflow"], user_type=params["userType"]),
        }, indent=2)

    return "\n".join(schema_registry.search_examples(params["resourceType"]))
