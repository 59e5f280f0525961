"""
FHIR MCP server over stdio.

Tools are served from the handler registry, `config://server` exposes the
redacted configuration, resource templates expose catalog prompts and search
examples by URI, and every catalog prompt is available through prompts/get.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    GetPromptResult,
    Prompt,
    PromptArgument,
    PromptMessage,
    Resource,
    ResourceTemplate,
    TextContent,
    Tool,
)

from fhir_mcp import __version__
from fhir_mcp.fhir_client import FHIRClient
from fhir_mcp.logging_utils import get_logger
from fhir_mcp.mcp_handlers import dispatch_tool, shared
from fhir_mcp import resource_templates
from fhir_mcp.prompts import PromptCatalog, PromptNotFoundError
from fhir_mcp.server_config import ServerConfig
from fhir_mcp.tool_schemas import get_tool_definitions

logger = get_logger(__name__)

SERVER_NAME = "fhir-mcp-server"
SERVER_VERSION = __version__
CONFIG_RESOURCE_URI = "config://server"

server = Server(SERVER_NAME)


@server.list_tools()
async def list_tools() -> List[Tool]:
    """List all available MCP tools"""
    return get_tool_definitions()


@server.call_tool()
async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> Sequence[TextContent]:
    """Handle tool calls from MCP client"""
    return await dispatch_tool(name, arguments)


@server.list_resources()
async def list_resources() -> List[Resource]:
    return [
        Resource(
            uri=CONFIG_RESOURCE_URI,
            name="FHIR server configuration",
            description="Active FHIR server configuration with secrets redacted",
            mimeType="application/json",
        )
    ]


@server.list_resource_templates()
async def list_resource_templates() -> List[ResourceTemplate]:
    return [
        ResourceTemplate(
            uriTemplate=template.uri,
            name=template.name,
            description=template.description,
            mimeType=template.mime_type,
        )
        for template in resource_templates.TEMPLATES
    ]


@server.read_resource()
async def read_resource(uri: Any) -> str:
    uri = str(uri)
    if uri == CONFIG_RESOURCE_URI:
        view = shared.get_config().public_view()
        view["serverVersion"] = SERVER_VERSION
        return json.dumps(view, indent=2)

    matched = resource_templates.match_uri(uri)
    if matched is None:
        raise ValueError(f"Unknown resource: {uri}")
    template, params = matched
    return resource_templates.render(template, params, shared.get_catalog())


@server.list_prompts()
async def list_prompts() -> List[Prompt]:
    return [
        Prompt(
            name=prompt.id,
            description=prompt.description,
            arguments=[PromptArgument(name=arg, required=False) for arg in prompt.arguments],
        )
        for prompt in shared.get_catalog().list()
    ]


@server.get_prompt()
async def get_prompt(name: str, arguments: Optional[Dict[str, str]]) -> GetPromptResult:
    catalog = shared.get_catalog()
    try:
        text = catalog.get(name, arguments or {})
    except PromptNotFoundError as e:
        raise ValueError(f"Unknown prompt: {name}") from e
    prompt = catalog.find(name)
    return GetPromptResult(
        description=prompt.description,
        messages=[PromptMessage(role="user", content=TextContent(type="text", text=text))],
    )


def build_context(config: ServerConfig, fhir_client: Optional[FHIRClient] = None) -> Dict[str, Any]:
    catalog = PromptCatalog()
    return {
        "config": config,
        "catalog": catalog,
        "fhir_client": fhir_client or FHIRClient(config),
        "SERVER_VERSION": SERVER_VERSION,
    }


async def main(config: ServerConfig) -> None:
    """Main entry point for the MCP server"""
    shared.initialize_context(build_context(config))
    logger.info(f"{SERVER_NAME} {SERVER_VERSION} starting (FHIR server: {config.url})")

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        await shared.get_fhir_client().aclose()
        logger.info(f"{SERVER_NAME} stopped")
