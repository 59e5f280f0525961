from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from .mixins import ElicitationMixin, ResourceTypeMixin


class SearchParams(ResourceTypeMixin):
    """
    Search FHIR resources by type and parameters.
    """
    parameters: Optional[Dict[str, Any]] = Field(
        default=None,
        description="FHIR search parameters, e.g. {\"family\": \"Smith\"}."
    )


class ReadParams(ResourceTypeMixin):
    """
    Read one FHIR resource by id.
    """
    id: Optional[str] = Field(default=None, description="Logical id of the resource.")


class CreateParams(ResourceTypeMixin):
    """
    Create a FHIR resource.
    """
    resource: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Resource body. Missing required fields are asked for."
    )


class UpdateParams(ResourceTypeMixin):
    """
    Replace a FHIR resource.
    """
    id: Optional[str] = Field(default=None, description="Logical id of the resource.")
    resource: Optional[Dict[str, Any]] = Field(default=None, description="Replacement resource body.")


class DeleteParams(ResourceTypeMixin):
    """
    Delete a FHIR resource by id.
    """
    id: Optional[str] = Field(default=None, description="Logical id of the resource.")


class CapabilityParams(BaseModel):
    """
    Fetch the server CapabilityStatement.
    """


class PatientIdentifyParams(ElicitationMixin):
    """
    Find exactly one patient record, asking the user to choose when several match.
    """
    resourceType: str = Field(
        default="Patient",
        pattern=r"^[A-Z][A-Za-z]+$",
        description="Resource type to identify (default Patient)."
    )
    searchParams: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Search criteria such as family, given, birthdate, identifier."
    )
    candidates: Optional[List[Any]] = Field(
        default=None,
        description="Candidate records from pendingArguments of a previous call, echoed with the answer."
    )


class GenerateNarrativeParams(BaseModel):
    """
    Render a human-readable XHTML narrative for a FHIR resource.
    """
    resourceType: str = Field(
        ...,
        pattern=r"^[A-Z][A-Za-z]+$",
        description="FHIR resource type of the resource."
    )
    resource: Dict[str, Any] = Field(..., description="FHIR resource to summarize.")
    style: Literal["clinical", "patient-friendly", "technical"] = Field(
        default="clinical",
        description="clinical (labelled summary) or patient-friendly / technical (one sentence)."
    )
