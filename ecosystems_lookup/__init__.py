"""
Package identity resolution against a local ecosyste.ms snapshot and the
packages.ecosyste.ms API.

Subpackages:
* domain   - pydantic models and the ecosystem/registry normalizer.
* core     - error taxonomy and process-wide dependency wiring.
* storage  - the read-only SQLite snapshot reader.
* services - remote API client and the local-then-remote resolver.
* api      - FastAPI routers exposing the lookup operations.
"""

__version__ = "0.1.0"
