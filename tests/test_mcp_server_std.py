"""
Tests for fhir_mcp/mcp_server_std.py -- MCP stdio server module.

Covers:
- list_tools / call_tool (MCP handlers with mocked dispatch)
- read_resource / list_resources / list_resource_templates
- list_prompts / get_prompt (prompt catalog surface)
- build_context / main (startup and shutdown)
"""

import pytest
import json
import sys
from pathlib import Path
from unittest.mock import patch, AsyncMock, MagicMock

from mcp.types import TextContent

# Ensure project root is on path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp import mcp_server_std
from fhir_mcp.mcp_server_std import (
    CONFIG_RESOURCE_URI,
    build_context,
    call_tool,
    get_prompt,
    list_prompts,
    list_resource_templates,
    list_resources,
    list_tools,
    read_resource,
)


# ============================================================================
# Test: tools
# ============================================================================

class TestListToolsHandler:

    @pytest.mark.asyncio
    async def test_every_tool_listed_with_schema(self):
        tools = await list_tools()
        names = [tool.name for tool in tools]
        assert "fhir_create" in names
        assert "patient_identify" in names
        for tool in tools:
            assert tool.description
            assert tool.inputSchema["type"] == "object"


class TestCallToolHandler:

    @pytest.mark.asyncio
    async def test_delegates_to_dispatch(self):
        expected = [TextContent(type="text", text='{"success": true}')]
        with patch("fhir_mcp.mcp_server_std.dispatch_tool", new_callable=AsyncMock, return_value=expected) as mock:
            result = await call_tool("get_config", {})
        mock.assert_awaited_once_with("get_config", {})
        assert result == expected

    @pytest.mark.asyncio
    async def test_real_dispatch_unknown_tool(self, handler_context):
        result = await call_tool("nonexistent_tool_xyz", None)
        data = json.loads(result[0].text)
        assert data["error_code"] == "TOOL_NOT_FOUND"


# ============================================================================
# Test: resources
# ============================================================================

class TestResources:

    @pytest.mark.asyncio
    async def test_list_resources(self):
        resources = await list_resources()
        assert [str(r.uri) for r in resources] == [CONFIG_RESOURCE_URI]

    @pytest.mark.asyncio
    async def test_read_config_resource(self, handler_context):
        data = json.loads(await read_resource(CONFIG_RESOURCE_URI))
        assert data["fhirUrl"] == "http://fhir.test/fhir"
        assert data["serverVersion"] == mcp_server_std.SERVER_VERSION

    @pytest.mark.asyncio
    async def test_unknown_resource(self, handler_context):
        with pytest.raises(ValueError, match="Unknown resource"):
            await read_resource("config://other")

    @pytest.mark.asyncio
    async def test_list_resource_templates(self):
        templates = await list_resource_templates()
        uris = [t.uriTemplate for t in templates]
        assert "prompt://fhir/resource/{resourceType}" in uris
        assert "examples://fhir/{resourceType}/search" in uris
        assert all(t.mimeType for t in templates)

    @pytest.mark.asyncio
    async def test_read_templated_resource(self, handler_context):
        text = await read_resource("prompt://fhir/resource/Observation")
        assert text.startswith("Use LOINC codes for Observation identification")

    @pytest.mark.asyncio
    async def test_templated_resource_with_bad_parameter(self, handler_context):
        with pytest.raises(ValueError, match="userType"):
            await read_resource("context://fhir/admission/patient")


# ============================================================================
# Test: prompts
# ============================================================================

class TestPrompts:

    @pytest.mark.asyncio
    async def test_list_prompts_exposes_placeholders(self):
        prompts = {p.name: p for p in await list_prompts()}
        assert "fhir-clinical-expert" in prompts
        args = [a.name for a in prompts["clinical-resource-patient"].arguments]
        assert args == ["resourceType"]

    @pytest.mark.asyncio
    async def test_get_prompt_interpolates(self):
        result = await get_prompt("workflow-discharge", {"workflow": "discharge"})
        assert result.messages[0].role == "user"
        assert result.messages[0].content.text == "This request is part of a patient discharge workflow."

    @pytest.mark.asyncio
    async def test_get_unknown_prompt(self):
        with pytest.raises(ValueError, match="Unknown prompt"):
            await get_prompt("does-not-exist", None)


# ============================================================================
# Test: startup
# ============================================================================

class TestStartup:

    def test_build_context(self, server_config):
        context = build_context(server_config)
        assert context["config"] is server_config
        assert context["fhir_client"].config is server_config
        assert context["SERVER_VERSION"] == mcp_server_std.SERVER_VERSION

    @pytest.mark.asyncio
    async def test_main_closes_client(self, server_config):
        client = MagicMock()
        client.aclose = AsyncMock()

        class _Streams:
            async def __aenter__(self):
                return MagicMock(), MagicMock()

            async def __aexit__(self, *exc):
                return False

        with patch("fhir_mcp.mcp_server_std.stdio_server", return_value=_Streams()), \
                patch("fhir_mcp.mcp_server_std.FHIRClient", return_value=client), \
                patch.object(mcp_server_std.server, "run", new_callable=AsyncMock) as run:
            await mcp_server_std.main(server_config)

        run.assert_awaited_once()
        client.aclose.assert_awaited_once()
