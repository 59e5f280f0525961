from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field


class GetConfigParams(BaseModel):
    """
    Show the active FHIR server configuration (secrets redacted).
    """


class SendFeedbackParams(BaseModel):
    """
    Send feedback or log messages to the server log.
    """
    message: str = Field(..., min_length=1, description="Feedback message to log.")
    level: Literal["debug", "info", "warn", "warning", "error"] = Field(
        default="info",
        description="Log level (defaults to info)."
    )
    context: Optional[Dict[str, Any]] = Field(default=None, description="Additional context data.")
