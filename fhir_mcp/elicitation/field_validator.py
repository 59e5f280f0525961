"""
Field Validator

Coerces a free-form answer to the declared shape and checks constraints.
All outcomes are ValidationResult values; nothing raises out of this module.
"""

import json
import math
import re
from typing import Any, List, Optional

from .types import ConstraintSet, ConstraintViolation, FieldSpec, Shape, ValidationResult

REQUIRED_MESSAGE = "This field is required and cannot be empty."
NUMBER_MESSAGE = "Value must be a valid number."
BOOLEAN_MESSAGE = "Value must be true/false, yes/no, or 1/0."
FORMAT_MESSAGE = "Value does not match the required format."

# Plain decimal or exponent notation, ASCII digits only
NUMBER_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?", re.ASCII)

TRUE_TOKENS = ("true", "yes", "1")
FALSE_TOKENS = ("false", "no", "0")


def format_bound(value: Any) -> str:
    """Render a numeric bound without a trailing '.0' for integral values."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def validate(raw_value: Optional[str], spec: FieldSpec) -> ValidationResult:
    """Validate a raw answer for a field spec."""
    return validate_value(raw_value, spec.shape, spec.constraints)


def validate_value(raw_value: Optional[str], shape: Shape, constraints: ConstraintSet) -> ValidationResult:
    """
    Validate a raw answer against a shape and constraint set.

    Empty input is a 'required' failure when the field is required, and a
    valid empty string otherwise.
    """
    if raw_value is None:
        raw_value = ""
    if not isinstance(raw_value, str):
        # Structured answers are re-encoded as JSON text
        raw_value = json.dumps(raw_value)

    if raw_value.strip() == "":
        if constraints.required:
            return ValidationResult(
                valid=False,
                failures=[ConstraintViolation(kind="required", message=REQUIRED_MESSAGE)],
            )
        return ValidationResult(valid=True, value="")

    if shape == Shape.NUMBER:
        return _validate_number(raw_value, constraints)
    if shape == Shape.BOOLEAN:
        return _validate_boolean(raw_value)
    if shape == Shape.ARRAY:
        return _validate_array(raw_value, constraints)
    if shape == Shape.OBJECT:
        return ValidationResult(valid=True, value=_coerce_object(raw_value))
    return _validate_string(raw_value, constraints)


def _validate_string(raw_value: str, constraints: ConstraintSet) -> ValidationResult:
    failures: List[ConstraintViolation] = []

    if constraints.pattern is not None:
        try:
            matched = re.fullmatch(constraints.pattern, raw_value) is not None
        except re.error:
            matched = False
        if not matched:
            failures.append(ConstraintViolation(
                kind="format", message=FORMAT_MESSAGE, bound=constraints.pattern,
            ))

    if constraints.enum is not None and raw_value not in constraints.enum:
        failures.append(ConstraintViolation(
            kind="enum",
            message=f"Value must be one of: {', '.join(constraints.enum)}",
            bound=list(constraints.enum),
        ))

    failures.extend(_length_failures(len(raw_value), constraints, unit=" characters long"))

    if failures:
        return ValidationResult(valid=False, value=raw_value, failures=failures)
    return ValidationResult(valid=True, value=raw_value)


def _validate_number(raw_value: str, constraints: ConstraintSet) -> ValidationResult:
    text = raw_value.strip()
    number = float(text) if NUMBER_PATTERN.fullmatch(text) else math.nan

    if not math.isfinite(number):
        return ValidationResult(
            valid=False,
            value=raw_value,
            failures=[ConstraintViolation(kind="type", message=NUMBER_MESSAGE)],
        )

    value: Any = int(number) if number.is_integer() else number
    failures: List[ConstraintViolation] = []

    if constraints.minimum is not None and number < constraints.minimum:
        failures.append(ConstraintViolation(
            kind="range",
            message=f"Value must be at least {format_bound(constraints.minimum)}.",
            bound=constraints.minimum,
        ))
    if constraints.maximum is not None and number > constraints.maximum:
        failures.append(ConstraintViolation(
            kind="range",
            message=f"Value must be at most {format_bound(constraints.maximum)}.",
            bound=constraints.maximum,
        ))
    if constraints.multiple_of:
        quotient = number / constraints.multiple_of
        if not math.isclose(quotient, round(quotient), abs_tol=1e-9):
            failures.append(ConstraintViolation(
                kind="range",
                message=f"Value must be a multiple of {format_bound(constraints.multiple_of)}.",
                bound=constraints.multiple_of,
            ))

    if failures:
        return ValidationResult(valid=False, value=value, failures=failures)
    return ValidationResult(valid=True, value=value)


def _validate_boolean(raw_value: str) -> ValidationResult:
    token = raw_value.strip().lower()
    if token in TRUE_TOKENS:
        return ValidationResult(valid=True, value=True)
    if token in FALSE_TOKENS:
        return ValidationResult(valid=True, value=False)
    return ValidationResult(
        valid=False,
        value=raw_value,
        failures=[ConstraintViolation(kind="type", message=BOOLEAN_MESSAGE)],
    )


def _validate_array(raw_value: str, constraints: ConstraintSet) -> ValidationResult:
    items = _coerce_array(raw_value)
    failures = _length_failures(len(items), constraints, unit=" items")
    if failures:
        return ValidationResult(valid=False, value=items, failures=failures)
    return ValidationResult(valid=True, value=items)


def _coerce_array(raw_value: str) -> List[Any]:
    try:
        parsed = json.loads(raw_value)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return parsed
    return [item.strip() for item in raw_value.split(",") if item.strip()]


def _coerce_object(raw_value: str) -> Any:
    # Non-object input is wrapped, never rejected
    try:
        parsed = json.loads(raw_value)
    except ValueError:
        return {"value": raw_value}
    if isinstance(parsed, dict):
        return parsed
    return {"value": raw_value}


def _length_failures(length: int, constraints: ConstraintSet, unit: str) -> List[ConstraintViolation]:
    failures = []
    if constraints.min_length is not None and length < constraints.min_length:
        failures.append(ConstraintViolation(
            kind="length",
            message=f"Value must be at least {constraints.min_length}{unit}.",
            bound=constraints.min_length,
        ))
    if constraints.max_length is not None and length > constraints.max_length:
        failures.append(ConstraintViolation(
            kind="length",
            message=f"Value must be at most {constraints.max_length}{unit}.",
            bound=constraints.max_length,
        ))
    return failures
