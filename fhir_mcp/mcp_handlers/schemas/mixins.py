from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class ElicitationMixin(BaseModel):
    """Parameters shared by every tool that can ask the user for missing input."""
    model_config = ConfigDict(extra="ignore")

    interactive: Any = Field(
        default=True,
        description="If false, skip guided input and run with the arguments as given."
    )
    answer: Any = Field(
        default=None,
        description="The user's reply to a previous elicitation."
    )
    context: Optional[str] = Field(
        default=None,
        description="The 'context' string of the elicitation being answered, echoed unchanged."
    )

    @model_validator(mode='after')
    def coerce_interactive(self):
        if isinstance(self.interactive, str):
            self.interactive = self.interactive.strip().lower() in ('true', '1', 'yes')
        else:
            self.interactive = bool(self.interactive)
        return self


class ResourceTypeMixin(ElicitationMixin):
    resourceType: str = Field(
        ...,
        pattern=r"^[A-Z][A-Za-z]+$",
        description="FHIR resource type, e.g. Patient, Observation."
    )
