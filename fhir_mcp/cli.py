"""
Command-line interface.

Usage:
    fhir-mcp-server --fhir-url URL [--auth-type bearer --auth-token TOKEN]
    fhir-mcp-server --fhir-url URL --auth-type client_credentials \\
        --oauth-client-id ID --oauth-client-secret SECRET --oauth-auto-discover
"""

import argparse
import asyncio
import sys
from typing import Any, Dict, List, Optional

from fhir_mcp import __version__
from fhir_mcp.logging_utils import configure_logging, get_logger
from fhir_mcp.server_config import AUTH_TYPES, ConfigError, load_config

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fhir-mcp-server",
        description="MCP server for FHIR R4 with guided input for missing fields",
    )
    parser.add_argument("-f", "--fhir-url", help="FHIR server base URL (env: FHIR_URL)")
    parser.add_argument("-t", "--timeout", type=int, help="Request timeout in milliseconds (default: 30000)")
    parser.add_argument("--auth-type", choices=AUTH_TYPES, help="Authentication type (default: none)")
    parser.add_argument("--auth-token", help="Bearer token for --auth-type bearer")
    parser.add_argument("--oauth-token-url", help="OAuth token endpoint")
    parser.add_argument("--oauth-client-id", help="OAuth client id")
    parser.add_argument("--oauth-client-secret", help="OAuth client secret")
    parser.add_argument("--oauth-scope", help="OAuth scope")
    parser.add_argument(
        "--oauth-auto-discover", action="store_true", default=None,
        help="Discover the token endpoint from .well-known/smart-configuration",
    )
    parser.add_argument("--api-key", help="API key sent as a bearer token (deprecated, use --auth-token)")
    parser.add_argument("--log-level", help="Log level: DEBUG, INFO, WARNING, ERROR (env: FHIR_MCP_LOG_LEVEL)")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Map parsed flags onto load_config() keys. Unset flags stay None."""
    return {
        "url": args.fhir_url,
        "timeout_ms": args.timeout,
        "api_key": args.api_key,
        "auth_type": args.auth_type,
        "auth_token": args.auth_token,
        "oauth_token_url": args.oauth_token_url,
        "oauth_client_id": args.oauth_client_id,
        "oauth_client_secret": args.oauth_client_secret,
        "oauth_scope": args.oauth_scope,
        "oauth_auto_discover": args.oauth_auto_discover,
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(overrides_from_args(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    from fhir_mcp.mcp_server_std import main as serve

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
