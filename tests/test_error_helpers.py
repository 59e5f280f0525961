"""
Tests for fhir_mcp/mcp_handlers/error_helpers.py and utils.py - Standardized responses.

All functions are pure (input -> output), only dependency is error_response().
"""

import pytest
import json
import sys
from datetime import date
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp.elicitation.types import (
    DisambiguationCandidate,
    ElicitationRequest,
    NeedsInput,
    NoMatches,
    OrchestratorInvariantViolation,
    Shape,
)
from fhir_mcp.fhir_client import FHIRRequestError
from fhir_mcp.mcp_handlers.error_helpers import (
    RECOVERY_PATTERNS,
    fhir_request_error,
    invalid_parameters_error,
    invariant_violation_error,
    timeout_error,
    tool_not_found_error,
)
from fhir_mcp.mcp_handlers.utils import (
    _sanitize_error_message,
    elicitation_response,
    error_response,
    no_matches_response,
    success_response,
)


# Helper to extract JSON from TextContent
def _parse_error(result):
    """Extract parsed JSON from error response list."""
    assert len(result) == 1
    tc = result[0]
    assert hasattr(tc, "text")
    return json.loads(tc.text)


# ============================================================================
# RECOVERY_PATTERNS constant
# ============================================================================

class TestRecoveryPatterns:

    def test_all_expected_keys_present(self):
        assert set(RECOVERY_PATTERNS) == {
            "invalid_parameters", "fhir_request_failed", "orchestrator_invariant_violation", "timeout",
        }

    @pytest.mark.parametrize("key", sorted(RECOVERY_PATTERNS))
    def test_each_pattern_has_action(self, key):
        assert RECOVERY_PATTERNS[key]["action"]
        assert RECOVERY_PATTERNS[key]["related_tools"]


# ============================================================================
# Error builders
# ============================================================================

class TestErrorBuilders:

    def test_invalid_parameters(self):
        data = _parse_error(invalid_parameters_error("fhir_read", "id: bad", param_name="id"))
        assert data["success"] is False
        assert data["error"] == "Invalid parameters for tool 'fhir_read': id: bad"
        assert data["error_code"] == "INVALID_PARAMETERS"
        assert data["param_name"] == "id"
        assert data["recovery"] == RECOVERY_PATTERNS["invalid_parameters"]

    def test_fhir_request_failed(self):
        error = FHIRRequestError(
            "FHIR server returned 404: gone",
            status_code=404,
            url="http://x/Patient/1",
            operation_outcome={"resourceType": "OperationOutcome", "issue": [{"diagnostics": "gone"}]},
        )
        data = _parse_error(fhir_request_error("fhir_read", error))
        assert data["error_code"] == "FHIR_REQUEST_FAILED"
        assert data["status_code"] == 404
        assert data["diagnostics"] == ["gone"]

    def test_invariant_violation(self):
        data = _parse_error(invariant_violation_error("fhir_create", OrchestratorInvariantViolation(True, True, True)))
        assert data["error_code"] == "ORCHESTRATOR_INVARIANT_VIOLATION"
        assert data["context"]["state"]["processedArgs"] is True
        assert "needsInput=True" in data["error"]

    def test_timeout(self):
        data = _parse_error(timeout_error("fhir_search", 60.0))
        assert data["error_code"] == "TIMEOUT"
        assert data["timeout_seconds"] == 60.0

    def test_tool_not_found_with_suggestion(self):
        data = _parse_error(tool_not_found_error("fhir_reed", ["fhir_read", "fhir_delete", "get_config"]))
        assert data["error_code"] == "TOOL_NOT_FOUND"
        assert data["similar_tools"][0] == "fhir_read"
        assert "Did you mean" in data["error"]

    def test_tool_not_found_without_suggestion(self):
        data = _parse_error(tool_not_found_error("zzz", ["fhir_read"]))
        assert data["similar_tools"] == []
        assert data["error"] == "Tool 'zzz' not found."


# ============================================================================
# Response utilities
# ============================================================================

class TestResponses:

    def test_sanitize_strips_paths_and_caps_length(self):
        message = _sanitize_error_message('File "/srv/app/fhir_mcp/x.py", line 12 broke')
        assert "/srv/app" not in message
        assert len(_sanitize_error_message("x" * 1000)) == 503

    def test_error_response_merges_details(self):
        data = json.loads(error_response("boom", details={"when": date(2024, 1, 2)}, error_code="E").text)
        assert data == {"success": False, "error": "boom", "error_code": "E", "when": "2024-01-02"}

    def test_success_response(self):
        data = json.loads(success_response({"shape": Shape.OBJECT, "ids": ("a",)})[0].text)
        assert data == {"success": True, "shape": "object", "ids": ["a"]}

    def test_elicitation_response(self):
        request = ElicitationRequest(
            prompt="Which one?",
            context="patient_identify - patient disambiguation",
            required=True,
            shape=Shape.NUMBER,
            examples=["1", "2"],
        )
        outcome = NeedsInput(
            request=request,
            errors=["Value must be at most 2."],
            candidates=[DisambiguationCandidate(1, "A", "p1"), DisambiguationCandidate(2, "B", "p2")],
            pending={"resourceType": "Patient"},
        )
        data = json.loads(elicitation_response(outcome)[0].text)
        assert data["requiresInput"] is True
        assert data["elicitation"]["validation"] == {"type": "number"}
        assert data["pendingArguments"] == {"resourceType": "Patient"}
        assert data["validationErrors"] == ["Value must be at most 2."]
        assert data["multipleMatches"] == 2
        assert data["candidates"][1] == {"ordinal": 2, "displayLabel": "B", "recordId": "p2"}
        assert "chosen number" in data["instructions"]

    def test_elicitation_response_omits_empty_sections(self):
        request = ElicitationRequest(prompt="p", context="fhir_read - id elicitation", required=True)
        data = json.loads(elicitation_response(NeedsInput(request=request))[0].text)
        assert "validation" not in data["elicitation"]
        assert "validationErrors" not in data
        assert "candidates" not in data

    def test_no_matches_response(self):
        data = json.loads(no_matches_response(NoMatches("Patient", {"family": "X"}))[0].text)
        assert data["noMatches"] is True
        assert data["message"] == "No Patient records matched the search criteria."
