"""
Shared context for MCP handlers.

Set once per process by the server entry point (or by tests) through
initialize_context(). Handlers read it through the getters below.
"""

from typing import Any, Dict, Optional

from fhir_mcp.elicitation.orchestrator import DialogueOrchestrator
from fhir_mcp.fhir_client import FHIRClient
from fhir_mcp.prompts import PromptCatalog
from fhir_mcp.server_config import ServerConfig

config: Optional[ServerConfig] = None
fhir_client: Optional[FHIRClient] = None
catalog: Optional[PromptCatalog] = None
orchestrator: Optional[DialogueOrchestrator] = None
SERVER_VERSION: Optional[str] = None


def initialize_context(context_dict: Dict[str, Any]) -> None:
    """Initialize shared context from the server entry point"""
    global config, fhir_client, catalog, orchestrator, SERVER_VERSION

    config = context_dict.get('config')
    catalog = context_dict.get('catalog') or PromptCatalog()
    fhir_client = context_dict.get('fhir_client')
    if fhir_client is None and config is not None:
        fhir_client = FHIRClient(config)
    orchestrator = context_dict.get('orchestrator') or DialogueOrchestrator(catalog)
    SERVER_VERSION = context_dict.get('SERVER_VERSION')


def reset_context() -> None:
    global config, fhir_client, catalog, orchestrator, SERVER_VERSION
    config = fhir_client = catalog = orchestrator = SERVER_VERSION = None


def get_config() -> ServerConfig:
    if config is None:
        raise RuntimeError("Server context not initialized: no configuration")
    return config


def get_fhir_client() -> FHIRClient:
    if fhir_client is None:
        raise RuntimeError("Server context not initialized: no FHIR client")
    return fhir_client


def get_catalog() -> PromptCatalog:
    global catalog
    if catalog is None:
        catalog = PromptCatalog()
    return catalog


def get_orchestrator() -> DialogueOrchestrator:
    global orchestrator
    if orchestrator is None:
        orchestrator = DialogueOrchestrator(get_catalog())
    return orchestrator
