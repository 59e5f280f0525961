"""
Tests for fhir_mcp/mcp_handlers/decorators.py - MCP tool decorator and registry.

Tests the decorator mechanics, registration, and metadata queries.
"""

import pytest
import asyncio
import json
import sys
from pathlib import Path

from mcp.types import TextContent

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp.mcp_handlers import decorators
from fhir_mcp.mcp_handlers.decorators import (
    mcp_tool,
    get_tool_registry,
    get_tool_description,
    list_registered_tools,
    _TOOL_DEFINITIONS,
)


@pytest.fixture(autouse=True)
def clean_registry():
    """Clean up registry before/after each test to prevent cross-contamination."""
    original = dict(_TOOL_DEFINITIONS)
    yield
    _TOOL_DEFINITIONS.clear()
    _TOOL_DEFINITIONS.update(original)


def _parse_response(result):
    return json.loads(result[0].text)


class TestMcpToolDecorator:

    def test_registers_tool(self):
        @mcp_tool("test_tool_alpha")
        async def handle_test_tool_alpha(arguments):
            return []

        assert "test_tool_alpha" in get_tool_registry()

    def test_auto_name_from_function(self):
        @mcp_tool()
        async def handle_my_auto_tool(arguments):
            return []

        assert "my_auto_tool" in _TOOL_DEFINITIONS

    def test_description_from_docstring(self):
        @mcp_tool("test_doc_tool")
        async def handle_test_doc_tool(arguments):
            """First line wins.

            Details nobody sees.
            """
            return []

        assert get_tool_description("test_doc_tool") == "First line wins."

    def test_explicit_description(self):
        @mcp_tool("test_desc_tool", description="Explicit")
        async def handle_test_desc_tool(arguments):
            """Ignored"""
            return []

        assert get_tool_description("test_desc_tool") == "Explicit"
        assert get_tool_description("never_registered") == ""

    def test_registered_tools_sorted(self):
        @mcp_tool("test_zeta")
        async def handle_test_zeta(arguments):
            return []

        @mcp_tool("test_alpha")
        async def handle_test_alpha(arguments):
            return []

        names = list_registered_tools()
        assert names == sorted(names)
        assert names.index("test_alpha") < names.index("test_zeta")


class TestWrapperBehavior:

    @pytest.mark.asyncio
    async def test_passes_result_through(self):
        @mcp_tool("test_passthrough")
        async def handle(arguments):
            return [TextContent(type="text", text=arguments["x"])]

        result = await handle({"x": "ok"})
        assert result[0].text == "ok"

    @pytest.mark.asyncio
    async def test_bare_text_content_is_wrapped(self):
        @mcp_tool("test_bare")
        async def handle(arguments):
            return TextContent(type="text", text="single")

        result = await handle({})
        assert isinstance(result, list)
        assert result[0].text == "single"

    @pytest.mark.asyncio
    async def test_timeout_returns_error(self):
        @mcp_tool("test_slow", timeout=0.05)
        async def handle(arguments):
            await asyncio.sleep(5)

        data = _parse_response(await handle({}))
        assert data["success"] is False
        assert data["error_code"] == "TIMEOUT"
        assert data["timeout_seconds"] == 0.05

    @pytest.mark.asyncio
    async def test_exception_becomes_system_error(self):
        @mcp_tool("test_broken")
        async def handle(arguments):
            raise KeyError("resourceType")

        data = _parse_response(await handle({}))
        assert data["error_code"] == "SYSTEM_ERROR"
        assert "test_broken" in data["error"]

    @pytest.mark.asyncio
    async def test_slow_call_warns(self, monkeypatch):
        warnings = []
        monkeypatch.setattr(decorators.logger, "warning", lambda msg, *a, **k: warnings.append(msg))

        @mcp_tool("test_nearly_slow", timeout=0.1)
        async def handle(arguments):
            await asyncio.sleep(0.09)
            return []

        await handle({})
        assert any("test_nearly_slow" in w for w in warnings)


class TestRegisteredFhirTools:

    def test_all_tools_registered(self):
        import fhir_mcp.mcp_handlers  # noqa: F401 - registers handlers

        assert set(list_registered_tools()) == {
            "fhir_search", "fhir_read", "fhir_create", "fhir_update", "fhir_delete",
            "fhir_capability", "fhir_generate_narrative", "patient_identify",
            "get_config", "send_feedback",
        }
