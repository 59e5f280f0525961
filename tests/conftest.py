"""
Pytest configuration and fixtures for fhir-mcp-server tests.
"""
import json
import sys
from pathlib import Path

import httpx
import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fhir_mcp.fhir_client import FHIRClient
from fhir_mcp.mcp_handlers import shared
from fhir_mcp.server_config import AuthConfig, ServerConfig


BASE_URL = "http://fhir.test/fhir"


def patient(patient_id, family, given, birth_date):
    return {
        "resourceType": "Patient",
        "id": patient_id,
        "name": [{"family": family, "given": [given]}],
        "birthDate": birth_date,
    }


def searchset(*resources):
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "total": len(resources),
        "entry": [{"resource": r, "search": {"mode": "match"}} for r in resources],
    }


class FakeFHIRServer:
    """Records requests and answers from a route table keyed by (method, path)."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def route(self, method, path, status=200, body=None):
        self.routes[(method, path)] = (status, body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={
                "resourceType": "OperationOutcome",
                "issue": [{"severity": "error", "code": "not-found", "diagnostics": f"No route {key}"}],
            })
        status, body = self.routes[key]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, content=json.dumps(body), headers={"Content-Type": "application/fhir+json"})

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def server_config():
    return ServerConfig(url=BASE_URL, timeout_ms=5000, auth=AuthConfig(type="none"))


@pytest.fixture
def fake_fhir():
    return FakeFHIRServer()


@pytest.fixture
def fhir_client(server_config, fake_fhir):
    return FHIRClient(server_config, transport=httpx.MockTransport(fake_fhir))


@pytest.fixture
def handler_context(server_config, fhir_client):
    """Shared handler context wired to the fake FHIR server."""
    shared.initialize_context({
        "config": server_config,
        "fhir_client": fhir_client,
        "SERVER_VERSION": "test",
    })
    yield shared
    shared.reset_context()


@pytest.fixture(autouse=True)
def _reset_shared_context():
    yield
    shared.reset_context()
