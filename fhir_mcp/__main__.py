import sys

from fhir_mcp.cli import main

sys.exit(main())
