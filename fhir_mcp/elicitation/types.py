"""
Shared types for the elicitation core.

Everything here is created per tool invocation and discarded with the
response. Nothing is cached between calls.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class Shape(str, Enum):
    """Expected value shape; selects the coercion path in the field validator."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class ConstraintSet:
    """Structural checks over a coerced value. None means unconstrained."""
    required: bool = True
    pattern: Optional[str] = None
    enum: Optional[Tuple[str, ...]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    multiple_of: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire form. Only populated constraints are emitted."""
        out: Dict[str, Any] = {}
        if self.pattern is not None:
            out["pattern"] = self.pattern
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.min_length is not None:
            out["minLength"] = self.min_length
        if self.max_length is not None:
            out["maxLength"] = self.max_length
        if self.minimum is not None:
            out["minimum"] = self.minimum
        if self.maximum is not None:
            out["maximum"] = self.maximum
        if self.multiple_of is not None:
            out["multipleOf"] = self.multiple_of
        return out


@dataclass(frozen=True)
class FieldSpec:
    """One field of a resource schema. Defined at import time, never mutated."""
    name: str
    shape: Shape
    constraints: ConstraintSet = ConstraintSet()
    description: str = ""
    examples: Tuple[str, ...] = ()

    @property
    def required(self) -> bool:
        return self.constraints.required


@dataclass
class ElicitationContext:
    """Where an elicitation is being issued from."""
    tool: str
    resource_type: Optional[str] = None
    workflow: Optional[str] = None
    user_type: str = "clinical"
    missing_fields: List[str] = field(default_factory=list)


@dataclass
class ElicitationRequest:
    """A single request for one missing piece of information."""
    prompt: str
    context: str
    required: bool
    shape: Optional[Shape] = None
    constraints: ConstraintSet = ConstraintSet()
    examples: List[str] = field(default_factory=list)

    @property
    def validation(self) -> Optional[Dict[str, Any]]:
        if self.shape is None:
            return None
        return {"type": self.shape.value, **self.constraints.to_dict()}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "prompt": self.prompt,
            "context": self.context,
            "required": self.required,
        }
        validation = self.validation
        if validation is not None:
            out["validation"] = validation
        out["examples"] = list(self.examples)
        return out


@dataclass(frozen=True)
class ConstraintViolation:
    kind: str           # required | format | enum | length | type | range
    message: str
    bound: Optional[Any] = None


@dataclass
class ValidationResult:
    """Outcome of validating one raw answer. Failures are values, not exceptions."""
    valid: bool
    value: Any = None
    failures: List[ConstraintViolation] = field(default_factory=list)

    @property
    def messages(self) -> List[str]:
        return [f.message for f in self.failures]

    @property
    def kind(self) -> Optional[str]:
        return self.failures[0].kind if self.failures else None


@dataclass
class DisambiguationCandidate:
    ordinal: int
    display_label: str
    record_id: str
    record: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ordinal": self.ordinal,
            "displayLabel": self.display_label,
            "recordId": self.record_id,
        }


# --- Dialogue outcomes ---

@dataclass
class NeedsInput:
    """
    More input is required. `pending` holds the arguments accumulated so far;
    the caller resends them together with the answer.
    """
    request: ElicitationRequest
    errors: List[str] = field(default_factory=list)
    candidates: Optional[List[DisambiguationCandidate]] = None
    pending: Dict[str, Any] = field(default_factory=dict)

    @property
    def multiple_matches(self) -> Optional[int]:
        return len(self.candidates) if self.candidates is not None else None


@dataclass
class Ready:
    payload: Dict[str, Any]


@dataclass
class NoMatches:
    """Terminal identification outcome: the search returned zero candidates."""
    resource_type: str
    search_params: Dict[str, Any] = field(default_factory=dict)


DialogueOutcome = Union[NeedsInput, Ready]
IdentificationOutcome = Union[NeedsInput, Ready, NoMatches]


# --- Errors ---

class ElicitationProtocolError(ValueError):
    """
    The call does not fit the dialogue it claims to continue: a foreign or
    malformed context string, or arguments that contradict each other.
    """

    def __init__(self, message: str, param_name: str = "context"):
        self.param_name = param_name
        super().__init__(message)


class OrchestratorInvariantViolation(RuntimeError):
    """
    Internal result was neither NeedsInput nor Ready.

    Carries the three contributing flags so the defect can be triaged from logs.
    """

    def __init__(self, needs_input: bool, has_processed_args: bool, has_elicitation_request: bool):
        self.needs_input = needs_input
        self.has_processed_args = has_processed_args
        self.has_elicitation_request = has_elicitation_request
        super().__init__(
            "Invalid elicitation result state: "
            f"needsInput={needs_input}, "
            f"processedArgs={has_processed_args}, "
            f"elicitationRequest={has_elicitation_request}"
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "needsInput": self.needs_input,
            "processedArgs": self.has_processed_args,
            "elicitationRequest": self.has_elicitation_request,
        }
