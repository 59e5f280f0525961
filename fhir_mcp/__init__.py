"""
FHIR MCP Server

Model Context Protocol bridge to FHIR REST APIs with guided elicitation of
missing resource fields and patient disambiguation.
"""

__version__ = "1.13.1"
