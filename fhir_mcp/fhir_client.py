"""
FHIR REST client.

Thin async wrapper over httpx for the six interactions the tools need.
Authentication headers are resolved once per client and reused.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from fhir_mcp.logging_utils import get_logger
from fhir_mcp.server_config import ServerConfig

logger = get_logger(__name__)

FHIR_JSON = "application/fhir+json"
DISCOVERY_TIMEOUT = 10.0


class FHIROperation(str, Enum):
    CREATE = "create"
    SEARCH = "search"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    CAPABILITIES = "capabilities"


class FHIRRequestError(Exception):
    """A FHIR interaction failed at the transport or HTTP level."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        operation_outcome: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
        self.operation_outcome = operation_outcome

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status_code": self.status_code, "url": self.url}
        if self.operation_outcome:
            out["diagnostics"] = outcome_diagnostics(self.operation_outcome)
        return out


def outcome_diagnostics(outcome: Dict[str, Any]) -> List[str]:
    """Collect diagnostics/details text from an OperationOutcome."""
    messages = []
    for issue in outcome.get("issue") or []:
        if not isinstance(issue, dict):
            continue
        text = issue.get("diagnostics") or (issue.get("details") or {}).get("text")
        if text:
            messages.append(text)
    return messages


def _query_params(parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for key, value in (parameters or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            params[key] = [str(v) for v in value]
        elif isinstance(value, dict):
            params[key] = json.dumps(value)
        elif isinstance(value, bool):
            params[key] = "true" if value else "false"
        else:
            params[key] = str(value)
    return params


class FHIRClient:
    """Async FHIR client bound to one server configuration."""

    def __init__(self, config: ServerConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.url,
                timeout=self.config.timeout_seconds,
                headers={"Accept": FHIR_JSON, "Content-Type": FHIR_JSON},
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # --- Authentication ---

    async def _auth_headers(self) -> Dict[str, str]:
        auth = self.config.auth
        if auth.type == "bearer" and auth.token:
            return {"Authorization": f"Bearer {auth.token}"}
        if auth.type == "client_credentials":
            token = await self._client_credentials_token()
            return {"Authorization": f"Bearer {token}"}
        if self.config.api_key:
            return {"Authorization": f"Bearer {self.config.api_key}"}
        return {}

    async def _client_credentials_token(self) -> str:
        if self._access_token:
            return self._access_token

        oauth = self.config.auth.oauth
        token_url = oauth.token_url
        if not token_url and oauth.auto_discover:
            token_url = await self.discover_token_endpoint()

        form = {
            "grant_type": "client_credentials",
            "client_id": oauth.client_id,
            "client_secret": oauth.client_secret,
        }
        if oauth.scope:
            form["scope"] = oauth.scope

        try:
            response = await self.http.post(
                token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise FHIRRequestError(f"OAuth token request failed: {e}", url=token_url) from e

        body = self._json_or_none(response)
        if response.is_error or not isinstance(body, dict) or not body.get("access_token"):
            detail = ""
            if isinstance(body, dict):
                detail = body.get("error_description") or body.get("error") or ""
            raise FHIRRequestError(
                f"OAuth token request failed: {detail or response.reason_phrase}",
                status_code=response.status_code,
                url=token_url,
            )

        self._access_token = body["access_token"]
        logger.info("Obtained OAuth access token via client_credentials")
        return self._access_token

    async def discover_token_endpoint(self) -> str:
        """Find token_endpoint from the server's SMART configuration document."""
        base = self.config.url
        candidates = [
            f"{base}/.well-known/smart-configuration",
            f"{base}/.well-known/smart_configuration",
        ]
        if base.endswith("/fhir"):
            candidates.append(f"{base[:-len('/fhir')]}/.well-known/smart-configuration")

        for url in candidates:
            try:
                response = await self.http.get(
                    url, headers={"Accept": "application/json"}, timeout=DISCOVERY_TIMEOUT,
                )
            except httpx.HTTPError as e:
                logger.debug(f"SMART discovery failed at {url}: {e}")
                continue
            body = self._json_or_none(response)
            if response.is_success and isinstance(body, dict) and body.get("token_endpoint"):
                return body["token_endpoint"]

        raise FHIRRequestError(f"Could not discover OAuth endpoints for FHIR server: {base}", url=base)

    # --- Interactions ---

    async def execute(
        self,
        operation: FHIROperation,
        resource_type: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run one interaction with a dialogue-ready payload."""
        payload = payload or {}
        operation = FHIROperation(operation)

        if operation == FHIROperation.SEARCH:
            return await self.search(resource_type, payload.get("parameters") or payload.get("searchParams"))
        if operation == FHIROperation.READ:
            return await self.read(resource_type, payload["id"])
        if operation == FHIROperation.CREATE:
            return await self.create(resource_type, payload["resource"])
        if operation == FHIROperation.UPDATE:
            return await self.update(resource_type, payload["id"], payload["resource"])
        if operation == FHIROperation.DELETE:
            return await self.delete(resource_type, payload["id"])
        return await self.capabilities()

    async def search(self, resource_type: str, parameters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        params = _query_params(parameters)
        params["_summary"] = "data"
        return await self._request("GET", f"/{resource_type}", params=params)

    async def read(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/{resource_type}/{resource_id}", params={"_summary": "data"})

    async def create(self, resource_type: str, resource: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", f"/{resource_type}", json_body=resource)

    async def update(self, resource_type: str, resource_id: str, resource: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/{resource_type}/{resource_id}", json_body=resource)

    async def delete(self, resource_type: str, resource_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/{resource_type}/{resource_id}")

    async def capabilities(self) -> Dict[str, Any]:
        return await self._request("GET", "/metadata")

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = await self._auth_headers()
        content = json.dumps(json_body) if json_body is not None else None
        logger.debug(f"FHIR {method} {path}")

        try:
            response = await self.http.request(method, path, params=params, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise FHIRRequestError(f"FHIR request failed: {e}", url=f"{self.config.url}{path}") from e

        body = self._json_or_none(response)
        if response.is_error:
            outcome = body if isinstance(body, dict) and body.get("resourceType") == "OperationOutcome" else None
            diagnostics = outcome_diagnostics(outcome) if outcome else []
            detail = "; ".join(diagnostics) or response.reason_phrase
            raise FHIRRequestError(
                f"FHIR server returned {response.status_code}: {detail}",
                status_code=response.status_code,
                url=str(response.request.url),
                operation_outcome=outcome,
            )

        if body is None:
            return {"status": response.status_code}
        return body

    @staticmethod
    def _json_or_none(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
