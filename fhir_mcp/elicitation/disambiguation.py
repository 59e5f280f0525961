"""
Disambiguation Resolver

Turns a list of search candidates into a numbered selection prompt, and maps
the caller's ordinal back to a record. Ordinals follow the order the
candidates were supplied in; the list is never re-fetched between turns.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from fhir_mcp.prompts import PromptCatalog
from .field_validator import validate_value
from .types import (
    ConstraintSet,
    ConstraintViolation,
    DisambiguationCandidate,
    ElicitationContext,
    ElicitationRequest,
    NoMatches,
    Shape,
    ValidationResult,
)


@dataclass
class SingleMatch:
    candidate: DisambiguationCandidate


@dataclass
class DisambiguationPrompt:
    request: ElicitationRequest
    candidates: List[DisambiguationCandidate]


DisambiguationResult = Union[NoMatches, SingleMatch, DisambiguationPrompt]

WHOLE_NUMBER_MESSAGE = "Value must be a whole number."


def unwrap_record(record: Any) -> Any:
    """Bundle entries carry the resource under 'resource'."""
    if isinstance(record, dict) and "resource" in record and isinstance(record["resource"], dict):
        return record["resource"]
    return record


def records_from_bundle(bundle: Any) -> List[Any]:
    """Resources of a searchset Bundle, skipping OperationOutcome entries."""
    if not isinstance(bundle, dict):
        return []
    records = []
    for entry in bundle.get("entry") or []:
        resource = unwrap_record(entry)
        if isinstance(resource, dict) and resource.get("resourceType") == "OperationOutcome":
            continue
        search_mode = (entry.get("search") or {}).get("mode") if isinstance(entry, dict) else None
        if search_mode == "include":
            continue
        records.append(resource)
    return records


def _first_name(record: Dict[str, Any]) -> Tuple[str, str]:
    names = record.get("name") or [{}]
    name = names[0] if isinstance(names, list) and names else {}
    if not isinstance(name, dict):
        return "", ""
    given = name.get("given") or []
    given_first = given[0] if isinstance(given, list) and given else ""
    return name.get("family") or "", given_first


def label_for(record: Any) -> str:
    """Human-readable label for a candidate record."""
    record = unwrap_record(record)
    if isinstance(record, str):
        return record
    if not isinstance(record, dict):
        return str(record)

    resource_type = record.get("resourceType")
    record_id = record.get("id") or ""

    if resource_type == "Patient":
        family, given = _first_name(record)
        birth_date = record.get("birthDate") or ""
        return f"{family}, {given} (DOB: {birth_date}, ID: {record_id})"

    if resource_type == "Practitioner":
        family, given = _first_name(record)
        qualifications = record.get("qualification") or [{}]
        specialty = ""
        if isinstance(qualifications, list) and qualifications and isinstance(qualifications[0], dict):
            specialty = (qualifications[0].get("code") or {}).get("text") or ""
        label = f"Dr. {given} {family}".strip()
        return f"{label} ({specialty})" if specialty else label

    if record_id:
        return f"ID: {record_id}"
    if resource_type:
        return resource_type
    return json.dumps(record, sort_keys=True)


def record_id_for(record: Any) -> str:
    record = unwrap_record(record)
    if isinstance(record, dict):
        return str(record.get("id") or "")
    return str(record)


def build_candidates(records: Sequence[Any]) -> List[DisambiguationCandidate]:
    """Number records 1..N in the order given."""
    return [
        DisambiguationCandidate(
            ordinal=index + 1,
            display_label=label_for(record),
            record_id=record_id_for(record),
            record=unwrap_record(record),
        )
        for index, record in enumerate(records)
    ]


def selection_constraints(count: int) -> ConstraintSet:
    return ConstraintSet(required=True, minimum=1, maximum=count)


def disambiguation_context(tool: str, field_name: str) -> str:
    return f"{tool} - {field_name} disambiguation"


def build_disambiguation_request(
    context: ElicitationContext,
    field_name: str,
    candidates: Sequence[DisambiguationCandidate],
    catalog: PromptCatalog,
    errors: Sequence[str] = (),
) -> ElicitationRequest:
    resource_part = f" for {context.resource_type}" if context.resource_type else ""
    base_prompt = catalog.clinical_context(context.resource_type, context.workflow, context.user_type)
    options = "\n".join(f"{c.ordinal}. {c.display_label}" for c in candidates)

    lines = []
    if errors:
        lines.append("The previous answer was not accepted:")
        lines.extend(f"- {error}" for error in errors)
        lines.append("")
    lines.append(f"Multiple {field_name} options were found{resource_part}. Please select the correct one:")
    lines.append("")
    lines.append(options)
    lines.append("")
    lines.append(f"Please respond with the number of your choice (1-{len(candidates)}).")
    block = "\n".join(lines)

    return ElicitationRequest(
        prompt=f"{base_prompt}\n\n{block}" if base_prompt else block,
        context=disambiguation_context(context.tool, field_name),
        required=True,
        shape=Shape.NUMBER,
        constraints=selection_constraints(len(candidates)),
        examples=[str(i) for i in range(1, min(len(candidates), 3) + 1)],
    )


def build_disambiguation(
    records: Sequence[Any],
    context: ElicitationContext,
    catalog: PromptCatalog,
    field_name: str = "patient",
    search_params: Optional[Dict[str, Any]] = None,
) -> DisambiguationResult:
    """
    0 records -> NoMatches, 1 -> SingleMatch, more -> a numbered selection prompt.
    """
    if not records:
        return NoMatches(resource_type=context.resource_type or "", search_params=dict(search_params or {}))
    candidates = build_candidates(records)
    if len(candidates) == 1:
        return SingleMatch(candidate=candidates[0])
    request = build_disambiguation_request(context, field_name, candidates, catalog)
    return DisambiguationPrompt(request=request, candidates=candidates)


def select_candidate(
    candidates: Sequence[DisambiguationCandidate],
    raw_answer: Optional[str],
) -> Tuple[Optional[DisambiguationCandidate], ValidationResult]:
    """
    Validate an ordinal answer and map it to its candidate by index.

    Returns (None, failure) when the answer is non-numeric or out of range.
    """
    result = validate_value(raw_answer, Shape.NUMBER, selection_constraints(len(candidates)))
    if not result.valid:
        return None, result
    if not isinstance(result.value, int):
        result.valid = False
        result.failures.append(ConstraintViolation(kind="type", message=WHOLE_NUMBER_MESSAGE))
        return None, result
    return candidates[result.value - 1], result
