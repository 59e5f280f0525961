"""
Dialogue Orchestrator

Entry point per tool call. Decides whether the call is a fresh submission or
an answer to an earlier elicitation (identified by the echoed context
string), and returns exactly one of NeedsInput or Ready. Identification may
also end in NoMatches.

The orchestrator holds no state between calls: the caller resends the
accumulated resource, search parameters or candidate list every turn, so the
same input always yields the same outcome.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from fhir_mcp.logging_utils import get_logger
from fhir_mcp.prompts import PromptCatalog
from . import completeness, disambiguation, schema_registry
from .field_validator import REQUIRED_MESSAGE, validate
from .types import (
    ConstraintSet,
    ConstraintViolation,
    DialogueOutcome,
    DisambiguationCandidate,
    ElicitationContext,
    ElicitationProtocolError,
    ElicitationRequest,
    FieldSpec,
    IdentificationOutcome,
    NeedsInput,
    NoMatches,
    OrchestratorInvariantViolation,
    Ready,
    Shape,
    ValidationResult,
)

logger = get_logger(__name__)

CONTEXT_PATTERN = re.compile(
    r"^(?P<tool>[\w\-]+) - (?P<field>[\w\-\.]+) (?P<kind>elicitation|disambiguation|workflow parameter)$"
)

CRITERIA_MESSAGE = "Search criteria must be key=value pairs or a JSON object."

SEARCH_PARAMETERS = "searchParameters"
PATIENT_IDENTIFIER = "patientIdentifier"


@dataclass
class ElicitationAnswer:
    tool: str
    field: str
    kind: str
    value: Any


@dataclass
class ToolElicitationResult:
    """
    Internal three-flag result. Must resolve to NeedsInput xor Ready;
    see DialogueOrchestrator.finalize().
    """
    needs_input: bool
    elicitation_request: Optional[ElicitationRequest] = None
    processed_args: Optional[Dict[str, Any]] = None
    context: Optional[ElicitationContext] = None
    errors: List[str] = field(default_factory=list)
    candidates: Optional[List[DisambiguationCandidate]] = None
    pending: Dict[str, Any] = field(default_factory=dict)


def parse_context(context: str) -> Optional[ElicitationAnswer]:
    match = CONTEXT_PATTERN.match((context or "").strip())
    if not match:
        return None
    return ElicitationAnswer(
        tool=match.group("tool"),
        field=match.group("field"),
        kind=match.group("kind"),
        value=None,
    )


def has_search_criteria(params: Optional[Dict[str, Any]]) -> bool:
    """True when at least one non-underscore parameter carries a value."""
    if not params:
        return False
    return any(
        not key.startswith("_") and not completeness.is_empty(value)
        for key, value in params.items()
    )


def parse_criteria(raw_value: Any) -> ValidationResult:
    """
    Parse free-form search criteria.

    Accepts a JSON object, 'key=value&key=value', or 'key: value, key: value'.
    """
    if isinstance(raw_value, dict):
        criteria = raw_value
    else:
        text = "" if raw_value is None else str(raw_value).strip()
        if not text:
            return ValidationResult(
                valid=False,
                failures=[ConstraintViolation(kind="required", message=REQUIRED_MESSAGE)],
            )
        criteria = _criteria_from_text(text)
        if criteria is None:
            return ValidationResult(
                valid=False,
                value=text,
                failures=[ConstraintViolation(kind="format", message=CRITERIA_MESSAGE)],
            )

    if not has_search_criteria(criteria):
        return ValidationResult(
            valid=False,
            value=criteria,
            failures=[ConstraintViolation(kind="format", message=CRITERIA_MESSAGE)],
        )
    return ValidationResult(valid=True, value=criteria)


def _criteria_from_text(text: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    separator = "&" if "&" in text else ","
    criteria: Dict[str, Any] = {}
    for piece in text.split(separator):
        piece = piece.strip()
        if not piece:
            continue
        if "=" in piece:
            key, _, value = piece.partition("=")
        elif ":" in piece:
            key, _, value = piece.partition(":")
        else:
            return None
        key, value = key.strip(), value.strip()
        if not key:
            return None
        criteria[key] = value
    return criteria or None


def build_workflow_elicitation(
    context: ElicitationContext,
    parameter_name: str,
    description: str,
    catalog: PromptCatalog,
    shape: Optional[Shape] = None,
    examples: Sequence[str] = (),
    errors: Sequence[str] = (),
) -> ElicitationRequest:
    """Request for a workflow parameter that is not a resource field."""
    base_prompt = catalog.clinical_context(context.resource_type, context.workflow, context.user_type)

    lines = []
    if errors:
        lines.append("The previous answer was not accepted:")
        lines.extend(f"- {error}" for error in errors)
        lines.append("")
    lines.append(f"To continue with this {context.workflow or 'healthcare'} workflow, please provide:")
    lines.append("")
    lines.append(f"Parameter: {parameter_name}")
    lines.append(f"Description: {description}")
    block = "\n".join(lines)

    return ElicitationRequest(
        prompt=f"{base_prompt}\n\n{block}" if base_prompt else block,
        context=f"{context.tool} - {parameter_name} workflow parameter",
        required=True,
        shape=shape,
        constraints=ConstraintSet(required=True),
        examples=list(examples),
    )


class DialogueOrchestrator:
    """Stateless per-call dialogue resolution for each FHIR workflow."""

    def __init__(self, catalog: Optional[PromptCatalog] = None):
        self.catalog = catalog or PromptCatalog()

    # --- Invariant ---

    @staticmethod
    def finalize(result: ToolElicitationResult) -> DialogueOutcome:
        """Convert the internal result, enforcing NeedsInput xor Ready."""
        has_request = result.elicitation_request is not None
        has_args = result.processed_args is not None

        if result.needs_input and has_request and not has_args:
            return NeedsInput(
                request=result.elicitation_request,
                errors=list(result.errors),
                candidates=result.candidates,
                pending=dict(result.pending),
            )
        if not result.needs_input and has_args and not has_request:
            return Ready(payload=result.processed_args)

        violation = OrchestratorInvariantViolation(result.needs_input, has_args, has_request)
        logger.error(str(violation))
        raise violation

    # --- Input analysis ---

    @staticmethod
    def _parse_answer(args: Dict[str, Any], tool: str) -> Optional[ElicitationAnswer]:
        context = args.get("context")
        answer = args.get("answer")
        if context is None and answer is None:
            return None
        if context is None:
            raise ElicitationProtocolError(
                "An answer was supplied without the elicitation 'context' it responds to."
            )
        parsed = parse_context(context)
        if parsed is None:
            raise ElicitationProtocolError(f"Unrecognized elicitation context: '{context}'")
        if parsed.tool != tool:
            raise ElicitationProtocolError(
                f"Elicitation context belongs to '{parsed.tool}', not '{tool}'"
            )
        parsed.value = answer
        return parsed

    def _needs_field(
        self,
        context: ElicitationContext,
        spec: FieldSpec,
        pending: Dict[str, Any],
        errors: Sequence[str] = (),
    ) -> DialogueOutcome:
        request = completeness.build_field_elicitation(context, spec, self.catalog, errors=errors)
        return self.finalize(ToolElicitationResult(
            needs_input=True,
            elicitation_request=request,
            context=context,
            errors=list(errors),
            pending=pending,
        ))

    def _needs_workflow_parameter(
        self,
        context: ElicitationContext,
        parameter_name: str,
        description: str,
        pending: Dict[str, Any],
        shape: Optional[Shape] = None,
        examples: Sequence[str] = (),
        errors: Sequence[str] = (),
    ) -> DialogueOutcome:
        request = build_workflow_elicitation(
            context, parameter_name, description, self.catalog,
            shape=shape, examples=examples, errors=errors,
        )
        return self.finalize(ToolElicitationResult(
            needs_input=True,
            elicitation_request=request,
            context=context,
            errors=list(errors),
            pending=pending,
        ))

    def _ready(self, payload: Dict[str, Any]) -> DialogueOutcome:
        return self.finalize(ToolElicitationResult(needs_input=False, processed_args=payload))

    # --- Workflows ---

    def create(self, args: Dict[str, Any]) -> DialogueOutcome:
        """Completeness dialogue over a resource to be created."""
        resource_type = args["resourceType"]
        if not args.get("interactive", True):
            return self._ready(dict(args))

        context = ElicitationContext(tool="fhir_create", resource_type=resource_type, workflow="creation")
        partial = dict(args.get("resource") or {})
        self._check_body_type(partial, resource_type)
        partial["resourceType"] = resource_type
        pending = {"resourceType": resource_type, "resource": partial}

        answer = self._parse_answer(args, context.tool)
        if answer is not None:
            spec = schema_registry.field_for(resource_type, answer.field)
            if answer.kind != "elicitation" or spec is None or spec is schema_registry.ID_FIELD:
                raise ElicitationProtocolError(
                    f"'{answer.field}' is not a field of {resource_type} awaiting an answer"
                )
            result = validate(answer.value, spec)
            if not result.valid:
                logger.debug(f"Rejected answer for {resource_type}.{spec.name}: {result.messages}")
                return self._needs_field(context, spec, pending, errors=result.messages)
            self._apply_field(partial, spec, result.value, resource_type)

        missing = completeness.missing_fields(resource_type, partial)
        if missing:
            context.missing_fields = [spec.name for spec in missing]
            return self._needs_field(context, missing[0], pending)

        return self._ready({"resourceType": resource_type, "resource": partial})

    def update(self, args: Dict[str, Any]) -> DialogueOutcome:
        """Elicit the id, then the replacement resource body."""
        resource_type = args["resourceType"]
        if not args.get("interactive", True):
            return self._ready(dict(args))

        context = ElicitationContext(tool="fhir_update", resource_type=resource_type, workflow="update")
        resource_id = args.get("id")
        resource = args.get("resource")

        answer = self._parse_answer(args, context.tool)
        error_spec = None
        errors: List[str] = []
        if answer is not None:
            if answer.field == schema_registry.ID_FIELD.name and answer.kind == "elicitation":
                result = validate(answer.value, schema_registry.ID_FIELD)
                if result.valid:
                    resource_id = result.value
                else:
                    error_spec, errors = schema_registry.ID_FIELD.name, result.messages
            elif answer.field == schema_registry.WHOLE_RESOURCE_FIELD and answer.kind == "workflow parameter":
                result = validate(answer.value, schema_registry.DEFAULT_FIELDS[0])
                if result.valid:
                    resource = result.value
                else:
                    error_spec, errors = schema_registry.WHOLE_RESOURCE_FIELD, result.messages
            else:
                raise ElicitationProtocolError(f"'{answer.field}' is not awaiting an answer for fhir_update")

        pending = {"resourceType": resource_type}
        if not completeness.is_empty(resource_id):
            pending["id"] = resource_id
        if not completeness.is_empty(resource):
            pending["resource"] = resource

        if error_spec == schema_registry.ID_FIELD.name or completeness.is_empty(resource_id):
            return self._needs_field(context, schema_registry.ID_FIELD, pending, errors=errors)
        if error_spec == schema_registry.WHOLE_RESOURCE_FIELD or completeness.is_empty(resource):
            return self._needs_resource_body(context, pending, errors=errors)

        resource = dict(resource)
        self._check_body_type(resource, resource_type)
        resource["resourceType"] = resource_type
        resource.setdefault("id", resource_id)
        return self._ready({"resourceType": resource_type, "id": resource_id, "resource": resource})

    def _needs_resource_body(
        self,
        context: ElicitationContext,
        pending: Dict[str, Any],
        errors: Sequence[str] = (),
    ) -> DialogueOutcome:
        return self._needs_workflow_parameter(
            context,
            schema_registry.WHOLE_RESOURCE_FIELD,
            f"Updated FHIR {context.resource_type} resource data in JSON format",
            pending,
            shape=Shape.OBJECT,
            examples=schema_registry.resource_examples(context.resource_type),
            errors=errors,
        )

    def read(self, args: Dict[str, Any]) -> DialogueOutcome:
        return self._by_id(args, tool="fhir_read", workflow="read")

    def delete(self, args: Dict[str, Any]) -> DialogueOutcome:
        return self._by_id(args, tool="fhir_delete", workflow="delete")

    def _by_id(self, args: Dict[str, Any], tool: str, workflow: str) -> DialogueOutcome:
        resource_type = args["resourceType"]
        if not args.get("interactive", True):
            return self._ready(dict(args))

        context = ElicitationContext(tool=tool, resource_type=resource_type, workflow=workflow)
        resource_id = args.get("id")
        pending = {"resourceType": resource_type}

        answer = self._parse_answer(args, tool)
        if answer is not None:
            if answer.field != schema_registry.ID_FIELD.name or answer.kind != "elicitation":
                raise ElicitationProtocolError(f"'{answer.field}' is not awaiting an answer for {tool}")
            result = validate(answer.value, schema_registry.ID_FIELD)
            if not result.valid:
                return self._needs_field(context, schema_registry.ID_FIELD, pending, errors=result.messages)
            resource_id = result.value

        if completeness.is_empty(resource_id):
            return self._needs_field(context, schema_registry.ID_FIELD, pending)
        return self._ready({"resourceType": resource_type, "id": resource_id})

    def search(self, args: Dict[str, Any]) -> DialogueOutcome:
        """Elicit search criteria when none are meaningful."""
        resource_type = args["resourceType"]
        if not args.get("interactive", True):
            return self._ready(dict(args))

        context = ElicitationContext(tool="fhir_search", resource_type=resource_type, workflow="search")
        parameters = dict(args.get("parameters") or {})
        pending = {"resourceType": resource_type, "parameters": parameters}
        description = (
            f"Search criteria for finding {resource_type} resources. "
            "You can use fields like name, birthdate, identifier, etc."
        )
        examples = schema_registry.search_examples(resource_type)

        answer = self._parse_answer(args, context.tool)
        if answer is not None:
            if answer.field != SEARCH_PARAMETERS or answer.kind != "workflow parameter":
                raise ElicitationProtocolError(f"'{answer.field}' is not awaiting an answer for fhir_search")
            result = parse_criteria(answer.value)
            if not result.valid:
                return self._needs_workflow_parameter(
                    context, SEARCH_PARAMETERS, description, pending,
                    examples=examples, errors=result.messages,
                )
            parameters.update(result.value)

        if not has_search_criteria(parameters):
            return self._needs_workflow_parameter(context, SEARCH_PARAMETERS, description, pending, examples=examples)
        return self._ready({"resourceType": resource_type, "parameters": parameters})

    def identify(self, args: Dict[str, Any]) -> IdentificationOutcome:
        """
        Find one record: disambiguate echoed candidates first, otherwise make
        sure there are search criteria to run.
        """
        resource_type = args.get("resourceType") or "Patient"
        if not args.get("interactive", True):
            return self._ready(dict(args))

        context = self._identification_context(resource_type)
        search_params = dict(args.get("searchParams") or {})
        records = args.get("candidates")
        field_name = self._subject_name(resource_type)
        pending = {"resourceType": resource_type, "searchParams": search_params}
        description = (
            "Patient identification information such as name, date of birth, or medical record number"
        )

        answer = self._parse_answer(args, context.tool)
        if answer is not None and answer.kind == "disambiguation":
            if answer.field != field_name:
                raise ElicitationProtocolError(
                    f"'{answer.field}' is not awaiting a choice for patient_identify"
                )
            if not records:
                raise ElicitationProtocolError(
                    "A disambiguation answer must echo the 'candidates' list it was issued with"
                )
            candidates = disambiguation.build_candidates(records)
            chosen, result = disambiguation.select_candidate(candidates, answer.value)
            if chosen is None:
                request = disambiguation.build_disambiguation_request(
                    context, field_name, candidates, self.catalog, errors=result.messages,
                )
                return self.finalize(ToolElicitationResult(
                    needs_input=True,
                    elicitation_request=request,
                    context=context,
                    errors=result.messages,
                    candidates=candidates,
                    pending={**pending, "candidates": [c.record for c in candidates]},
                ))
            return self._ready(self._selected_payload(resource_type, chosen, search_params))

        if answer is not None:
            if answer.field != PATIENT_IDENTIFIER or answer.kind != "workflow parameter":
                raise ElicitationProtocolError(
                    f"'{answer.field}' is not awaiting an answer for patient_identify"
                )
            result = parse_criteria(answer.value)
            if not result.valid:
                return self._needs_workflow_parameter(
                    context, PATIENT_IDENTIFIER, description, pending,
                    examples=schema_registry.IDENTIFICATION_EXAMPLES, errors=result.messages,
                )
            search_params.update(result.value)

        if records is not None:
            return self.resolve_candidates(resource_type, records, search_params)

        if not has_search_criteria(search_params):
            return self._needs_workflow_parameter(
                context, PATIENT_IDENTIFIER, description, pending,
                examples=schema_registry.IDENTIFICATION_EXAMPLES,
            )
        return self._ready({"resourceType": resource_type, "searchParams": search_params})

    def resolve_candidates(
        self,
        resource_type: str,
        records: Sequence[Any],
        search_params: Optional[Dict[str, Any]] = None,
    ) -> IdentificationOutcome:
        """Map search results to NoMatches, a single Ready record, or a selection prompt."""
        context = self._identification_context(resource_type)
        outcome = disambiguation.build_disambiguation(
            records, context, self.catalog,
            field_name=self._subject_name(resource_type),
            search_params=search_params,
        )
        if isinstance(outcome, NoMatches):
            return outcome
        if isinstance(outcome, disambiguation.SingleMatch):
            return self._ready(self._selected_payload(resource_type, outcome.candidate, search_params))
        return self.finalize(ToolElicitationResult(
            needs_input=True,
            elicitation_request=outcome.request,
            context=context,
            candidates=outcome.candidates,
            pending={
                "resourceType": resource_type,
                "searchParams": dict(search_params or {}),
                "candidates": [c.record for c in outcome.candidates],
            },
        ))

    # --- Helpers ---

    @staticmethod
    def _identification_context(resource_type: str) -> ElicitationContext:
        return ElicitationContext(
            tool="patient_identify", resource_type=resource_type, workflow="patient-identification",
        )

    @staticmethod
    def _subject_name(resource_type: str) -> str:
        return "patient" if resource_type == "Patient" else resource_type.lower()

    @staticmethod
    def _selected_payload(
        resource_type: str,
        candidate: DisambiguationCandidate,
        search_params: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        return {
            "resourceType": resource_type,
            "recordId": candidate.record_id,
            "record": candidate.record,
            "searchParams": dict(search_params or {}),
        }

    @staticmethod
    def _check_body_type(resource: Dict[str, Any], resource_type: str) -> None:
        body_type = resource.get("resourceType")
        if body_type and body_type != resource_type:
            raise ElicitationProtocolError(
                f"Resource body is a {body_type}, but resourceType is {resource_type}",
                param_name="resource",
            )

    @staticmethod
    def _apply_field(partial: Dict[str, Any], spec: FieldSpec, value: Any, resource_type: str) -> None:
        if spec.name == schema_registry.WHOLE_RESOURCE_FIELD and isinstance(value, dict):
            partial.update(value)
            partial["resourceType"] = resource_type
        else:
            partial[spec.name] = value
