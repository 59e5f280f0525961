"""
Guided elicitation core.

Stateless per-call resolution of missing resource fields, answer
validation, and candidate disambiguation for the FHIR tools.
"""

from .types import (
    ConstraintSet,
    DisambiguationCandidate,
    ElicitationContext,
    ElicitationProtocolError,
    ElicitationRequest,
    FieldSpec,
    NeedsInput,
    NoMatches,
    OrchestratorInvariantViolation,
    Ready,
    Shape,
    ValidationResult,
)
from .field_validator import validate, validate_value
from .completeness import build_field_elicitation, is_complete, missing_fields, next_missing_field
from .disambiguation import build_disambiguation, select_candidate
from .orchestrator import DialogueOrchestrator

__all__ = [
    "ConstraintSet",
    "DialogueOrchestrator",
    "DisambiguationCandidate",
    "ElicitationContext",
    "ElicitationProtocolError",
    "ElicitationRequest",
    "FieldSpec",
    "NeedsInput",
    "NoMatches",
    "OrchestratorInvariantViolation",
    "Ready",
    "Shape",
    "ValidationResult",
    "build_disambiguation",
    "build_field_elicitation",
    "is_complete",
    "missing_fields",
    "next_missing_field",
    "select_candidate",
    "validate",
    "validate_value",
]
