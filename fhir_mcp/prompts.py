"""
Prompt catalog.

Read-only lookup of static prompt text keyed by id. Injected wherever prompt
text is needed; the elicitation core only relies on get() and
clinical_context().
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fhir_mcp.logging_utils import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")


class PromptNotFoundError(KeyError):
    pass


@dataclass(frozen=True)
class FHIRPrompt:
    id: str
    name: str
    description: str
    prompt: str
    tags: Tuple[str, ...] = ()
    context: Dict[str, str] = field(default_factory=dict)

    @property
    def arguments(self) -> List[str]:
        """Placeholder names used by the template, in first-seen order."""
        seen: List[str] = []
        for match in _PLACEHOLDER.finditer(self.prompt):
            if match.group(1) not in seen:
                seen.append(match.group(1))
        return seen


def interpolate(template: str, args: Optional[Mapping[str, Any]] = None) -> str:
    """
    Replace {{key}} placeholders with values from args.

    Non-string values are JSON-encoded. Placeholders with no matching key are
    dropped. The result is stripped of surrounding whitespace.
    """
    args = args or {}

    def _sub(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key not in args:
            return ""
        value = args[key]
        return value if isinstance(value, str) else json.dumps(value)

    return _PLACEHOLDER.sub(_sub, template).strip()


class PromptCatalog:
    """Immutable id -> prompt mapping with context-aware composition."""

    def __init__(self, prompts: Optional[Iterable[FHIRPrompt]] = None):
        self._prompts: Dict[str, FHIRPrompt] = {}
        for prompt in (DEFAULT_PROMPTS if prompts is None else prompts):
            self._prompts[prompt.id] = prompt

    def __contains__(self, prompt_id: str) -> bool:
        return prompt_id in self._prompts

    def __len__(self) -> int:
        return len(self._prompts)

    def list(self) -> List[FHIRPrompt]:
        return list(self._prompts.values())

    def find(self, prompt_id: str) -> Optional[FHIRPrompt]:
        return self._prompts.get(prompt_id)

    def get(self, prompt_id: str, context: Optional[Mapping[str, Any]] = None) -> str:
        """Render a prompt. Raises PromptNotFoundError for unknown ids."""
        prompt = self._prompts.get(prompt_id)
        if prompt is None:
            raise PromptNotFoundError(f"Prompt not found: {prompt_id}")
        return interpolate(prompt.prompt, context)

    def by_tag(self, tag: str) -> List[FHIRPrompt]:
        return [p for p in self._prompts.values() if tag in p.tags]

    def by_resource_type(self, resource_type: str) -> List[FHIRPrompt]:
        lowered = resource_type.lower()
        return [
            p for p in self._prompts.values()
            if p.context.get("resourceType") == resource_type or lowered in p.tags
        ]

    def clinical_context(
        self,
        resource_type: Optional[str] = None,
        workflow: Optional[str] = None,
        user_type: str = "clinical",
    ) -> str:
        """
        Compose the base expert prompt with resource, workflow and audience
        specific sections. Sections missing from the catalog are skipped.
        """
        sections: List[str] = []
        if "fhir-clinical-expert" in self:
            sections.append(self.get("fhir-clinical-expert"))

        if resource_type:
            matches = self.by_resource_type(resource_type)
            if matches:
                sections.append(self.get(matches[0].id, {"resourceType": resource_type}))

        if workflow:
            wanted = workflow.lower()
            for prompt in self.by_tag("workflow"):
                if wanted in prompt.id:
                    sections.append(self.get(prompt.id, {"workflow": workflow}))
                    break

        user_prompt_id = f"user-{user_type}"
        if user_prompt_id in self:
            sections.append(self.get(user_prompt_id, {"userType": user_type}))
        else:
            logger.debug(f"No audience prompt for user type '{user_type}'")

        return "\n\n".join(sections)


DEFAULT_PROMPTS: Tuple[FHIRPrompt, ...] = (
    FHIRPrompt(
        id="fhir-clinical-expert",
        name="FHIR R4 Clinical Expert",
        description="Core clinical data expert focusing on patient care and FHIR compliance",
        prompt=(
            "You are a FHIR R4 clinical data expert. Keep patient safety, FHIR R4 "
            "compliance and data integrity in mind when supplying healthcare data."
        ),
        tags=("clinical", "core", "expert", "fhir-r4"),
        context={"userType": "clinical"},
    ),
    FHIRPrompt(
        id="clinical-resource-patient",
        name="Patient Resource Clinical Context",
        description="Clinical expertise for Patient resource management",
        prompt=(
            "Focus on accurate {{resourceType}} identification and demographics. "
            "Avoid duplicate records and respect privacy preferences."
        ),
        tags=("clinical", "patient", "resource-specific"),
        context={"resourceType": "Patient"},
    ),
    FHIRPrompt(
        id="clinical-resource-observation",
        name="Observation Resource Clinical Context",
        description="Clinical expertise for Observation resource management",
        prompt=(
            "Use LOINC codes for {{resourceType}} identification and UCUM units for "
            "measured values. Flag abnormal results appropriately."
        ),
        tags=("clinical", "observation", "resource-specific"),
        context={"resourceType": "Observation"},
    ),
    FHIRPrompt(
        id="clinical-resource-condition",
        name="Condition Resource Clinical Context",
        description="Clinical expertise for Condition resource management",
        prompt=(
            "Record {{resourceType}} entries with SNOMED CT or ICD-10 codes and an "
            "explicit clinical status."
        ),
        tags=("clinical", "condition", "resource-specific"),
        context={"resourceType": "Condition"},
    ),
    FHIRPrompt(
        id="clinical-resource-medication",
        name="Medication Resource Clinical Context",
        description="Clinical expertise for medication orders",
        prompt=(
            "Identify medications with RxNorm codes and state the request intent "
            "and status for each {{resourceType}}."
        ),
        tags=("clinical", "medicationrequest", "resource-specific"),
        context={"resourceType": "MedicationRequest"},
    ),
    FHIRPrompt(
        id="workflow-admission",
        name="Patient Admission Workflow",
        description="Guidance for inpatient admission",
        prompt="This request is part of a patient {{workflow}} workflow.",
        tags=("workflow", "admission"),
    ),
    FHIRPrompt(
        id="workflow-discharge",
        name="Patient Discharge Workflow",
        description="Guidance for discharge planning",
        prompt="This request is part of a patient {{workflow}} workflow.",
        tags=("workflow", "discharge"),
    ),
    FHIRPrompt(
        id="workflow-patient-identification",
        name="Patient Identification Workflow",
        description="Guidance for positively identifying a patient",
        prompt=(
            "Positive patient identification requires at least two identifiers, "
            "such as full name and date of birth, or a medical record number."
        ),
        tags=("workflow", "identification"),
    ),
    FHIRPrompt(
        id="user-clinical",
        name="Clinical User Context",
        description="Audience: clinicians",
        prompt="Answer in clinical terms suitable for a {{userType}} user.",
        tags=("audience", "clinical"),
    ),
    FHIRPrompt(
        id="user-technical",
        name="Technical User Context",
        description="Audience: integration engineers",
        prompt="Answer with exact FHIR element names and JSON structures for a {{userType}} user.",
        tags=("audience", "technical"),
    ),
)
