"""
Schema Registry

Static, ordered field schemas per FHIR resource type. Field order is the order
in which missing fields are requested, so it must stay stable.
"""

import json
from typing import Dict, Optional, Tuple

from .types import ConstraintSet, FieldSpec, Shape

# Field satisfied by the resource body as a whole (unregistered resource types)
WHOLE_RESOURCE_FIELD = "resource"

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
DATETIME_PATTERN = r"^\d{4}-\d{2}-\d{2}(T\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:\d{2})?)?$"
ID_PATTERN = r"^[A-Za-z0-9\-\.]{1,64}$"

OPTIONAL = ConstraintSet(required=False)
REQUIRED = ConstraintSet(required=True)

_SUBJECT = FieldSpec(
    name="subject",
    shape=Shape.OBJECT,
    constraints=REQUIRED,
    description="Reference to the patient this resource is about",
    examples=('{"reference": "Patient/123"}', '{"reference": "Patient/example"}'),
)

_HUMAN_NAME = FieldSpec(
    name="name",
    shape=Shape.ARRAY,
    constraints=ConstraintSet(required=True, min_length=1),
    description="One or more HumanName entries (family and given names)",
    examples=(
        '[{"family": "Smith", "given": ["John"]}]',
        '[{"family": "Johnson", "given": ["Mary", "Ann"]}]',
    ),
)

_SCHEMAS: Dict[str, Tuple[FieldSpec, ...]] = {
    "Patient": (
        _HUMAN_NAME,
        FieldSpec(
            name="gender",
            shape=Shape.STRING,
            constraints=ConstraintSet(required=True, enum=("male", "female", "other", "unknown")),
            description="Administrative gender",
            examples=("male", "female", "other"),
        ),
        FieldSpec(
            name="birthDate",
            shape=Shape.STRING,
            constraints=ConstraintSet(required=True, pattern=DATE_PATTERN),
            description="Date of birth (YYYY-MM-DD)",
            examples=("1990-01-15", "1985-12-03"),
        ),
        FieldSpec(
            name="active",
            shape=Shape.BOOLEAN,
            constraints=OPTIONAL,
            description="Whether this patient record is in active use",
            examples=("true", "false"),
        ),
        FieldSpec(
            name="identifier",
            shape=Shape.ARRAY,
            constraints=OPTIONAL,
            description="Business identifiers such as a medical record number",
            examples=('[{"system": "http://hospital.example.org/mrn", "value": "MRN12345"}]',),
        ),
    ),
    "Practitioner": (
        _HUMAN_NAME,
        FieldSpec(
            name="active",
            shape=Shape.BOOLEAN,
            constraints=OPTIONAL,
            description="Whether this practitioner record is in active use",
            examples=("true", "false"),
        ),
        FieldSpec(
            name="qualification",
            shape=Shape.ARRAY,
            constraints=OPTIONAL,
            description="Certifications, licenses or training",
            examples=('[{"code": {"text": "Cardiology"}}]',),
        ),
    ),
    "Observation": (
        FieldSpec(
            name="status",
            shape=Shape.STRING,
            constraints=ConstraintSet(
                required=True,
                enum=("registered", "preliminary", "final", "amended", "corrected",
                      "cancelled", "entered-in-error", "unknown"),
            ),
            description="Status of the result value",
            examples=("final", "preliminary", "amended"),
        ),
        FieldSpec(
            name="code",
            shape=Shape.OBJECT,
            constraints=REQUIRED,
            description="Type of observation (LOINC preferred)",
            examples=(
                '{"coding": [{"system": "http://loinc.org", "code": "8480-6", "display": "Systolic blood pressure"}]}',
            ),
        ),
        _SUBJECT,
        FieldSpec(
            name="effectiveDateTime",
            shape=Shape.STRING,
            constraints=ConstraintSet(required=False, pattern=DATETIME_PATTERN),
            description="Clinically relevant time of the observation",
            examples=("2024-03-01T09:30:00Z", "2024-03-01"),
        ),
        FieldSpec(
            name="valueQuantity",
            shape=Shape.OBJECT,
            constraints=OPTIONAL,
            description="Measured value with UCUM unit",
            examples=('{"value": 120, "unit": "mmHg", "system": "http://unitsofmeasure.org", "code": "mm[Hg]"}',),
        ),
    ),
    "Condition": (
        _SUBJECT,
        FieldSpec(
            name="code",
            shape=Shape.OBJECT,
            constraints=REQUIRED,
            description="Identification of the condition (SNOMED CT preferred)",
            examples=('{"coding": [{"system": "http://snomed.info/sct", "code": "38341003", "display": "Hypertension"}]}',),
        ),
        FieldSpec(
            name="clinicalStatus",
            shape=Shape.OBJECT,
            constraints=OPTIONAL,
            description="active | recurrence | relapse | inactive | remission | resolved",
            examples=('{"coding": [{"system": "http://terminology.hl7.org/CodeSystem/condition-clinical", "code": "active"}]}',),
        ),
        FieldSpec(
            name="onsetDateTime",
            shape=Shape.STRING,
            constraints=ConstraintSet(required=False, pattern=DATETIME_PATTERN),
            description="Estimated or actual date of onset",
            examples=("2020-01-01",),
        ),
    ),
    "MedicationRequest": (
        FieldSpec(
            name="status",
            shape=Shape.STRING,
            constraints=ConstraintSet(
                required=True,
                enum=("active", "on-hold", "cancelled", "completed", "entered-in-error",
                      "stopped", "draft", "unknown"),
            ),
            description="Current state of the order",
            examples=("active", "draft", "completed"),
        ),
        FieldSpec(
            name="intent",
            shape=Shape.STRING,
            constraints=ConstraintSet(
                required=True,
                enum=("proposal", "plan", "order", "original-order", "reflex-order",
                      "filler-order", "instance-order", "option"),
            ),
            description="Whether the request is a proposal, plan or order",
            examples=("order", "plan", "proposal"),
        ),
        FieldSpec(
            name="medicationCodeableConcept",
            shape=Shape.OBJECT,
            constraints=REQUIRED,
            description="Medication to be taken (RxNorm preferred)",
            examples=('{"coding": [{"system": "http://www.nlm.nih.gov/research/umls/rxnorm", "code": "197361", "display": "Amlodipine 5 MG"}]}',),
        ),
        _SUBJECT,
        FieldSpec(
            name="authoredOn",
            shape=Shape.STRING,
            constraints=ConstraintSet(required=False, pattern=DATETIME_PATTERN),
            description="When the request was initially authored",
            examples=("2024-03-01",),
        ),
    ),
    "Encounter": (
        FieldSpec(
            name="status",
            shape=Shape.STRING,
            constraints=ConstraintSet(
                required=True,
                enum=("planned", "arrived", "triaged", "in-progress", "onleave",
                      "finished", "cancelled", "entered-in-error", "unknown"),
            ),
            description="Current state of the encounter",
            examples=("in-progress", "planned", "finished"),
        ),
        FieldSpec(
            name="class",
            shape=Shape.OBJECT,
            constraints=REQUIRED,
            description="Classification of the encounter (inpatient, ambulatory, emergency...)",
            examples=('{"system": "http://terminology.hl7.org/CodeSystem/v3-ActCode", "code": "AMB", "display": "ambulatory"}',),
        ),
        _SUBJECT,
        FieldSpec(
            name="period",
            shape=Shape.OBJECT,
            constraints=OPTIONAL,
            description="Start and end time of the encounter",
            examples=('{"start": "2024-03-01T09:00:00Z"}',),
        ),
    ),
}

DEFAULT_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        name=WHOLE_RESOURCE_FIELD,
        shape=Shape.OBJECT,
        constraints=REQUIRED,
        description="Complete FHIR resource data in JSON format",
        examples=(),
    ),
)

# Parameters elicited outside resource bodies
ID_FIELD = FieldSpec(
    name="id",
    shape=Shape.STRING,
    constraints=ConstraintSet(required=True, pattern=ID_PATTERN),
    description="Logical id of the resource on the FHIR server",
    examples=("patient-123", "obs-456789"),
)

RESOURCE_EXAMPLES: Dict[str, Tuple[str, ...]] = {
    "Patient": (
        '{"resourceType": "Patient", "active": true, '
        '"name": [{"family": "Smith", "given": ["John", "Michael"]}], '
        '"gender": "male", "birthDate": "1990-01-15"}',
    ),
    "Observation": (
        '{"resourceType": "Observation", "status": "final", '
        '"code": {"coding": [{"system": "http://loinc.org", "code": "8480-6", '
        '"display": "Systolic blood pressure"}]}, '
        '"subject": {"reference": "Patient/123"}, '
        '"valueQuantity": {"value": 120, "unit": "mmHg"}}',
    ),
}

SEARCH_EXAMPLES: Dict[str, Tuple[str, ...]] = {
    "Patient": ("family=Smith&given=John", "birthdate=1990-01-15", "identifier=MRN12345", "name=John Smith"),
    "Observation": ("subject=Patient/123", "code=8480-6", "date=ge2021-01-01", "subject=Patient/123&code=blood-pressure"),
    "Condition": ("subject=Patient/123", "clinical-status=active", "code=38341003", "onset-date=ge2020-01-01"),
}

IDENTIFICATION_EXAMPLES: Tuple[str, ...] = (
    "family=Smith&given=John&birthdate=1990-01-15",
    "family: Johnson, given: Mary",
    "identifier=MRN12345",
    '{"family": "Smith", "given": "John", "birthdate": "1990-01-15"}',
)


def fields_for(resource_type: str) -> Tuple[FieldSpec, ...]:
    """Ordered field specs for a resource type; DEFAULT_FIELDS when unregistered."""
    return _SCHEMAS.get(resource_type, DEFAULT_FIELDS)


def field_for(resource_type: str, name: str) -> Optional[FieldSpec]:
    if name == ID_FIELD.name:
        return ID_FIELD
    for spec in fields_for(resource_type):
        if spec.name == name:
            return spec
    return None


def is_registered(resource_type: str) -> bool:
    return resource_type in _SCHEMAS


def registered_types() -> Tuple[str, ...]:
    return tuple(_SCHEMAS.keys())


def resource_examples(resource_type: str) -> Tuple[str, ...]:
    """Whole-resource examples; unregistered types get a minimal body with a narrative."""
    if resource_type in RESOURCE_EXAMPLES:
        return RESOURCE_EXAMPLES[resource_type]
    return (json.dumps({
        "resourceType": resource_type,
        "text": {"status": "generated", "div": f'<div xmlns="http://www.w3.org/1999/xhtml">{resource_type}</div>'},
    }),)


def search_examples(resource_type: str) -> Tuple[str, ...]:
    return SEARCH_EXAMPLES.get(resource_type, ("subject=Patient/123",))

