"""Diagnostics API for checking the static data sources."""

from fastapi import APIRouter

from bustimes.config import settings
from bustimes.core.stop_directory import describe_source

router = APIRouter(prefix="/api/diagnostics", tags=["diagnostics"])

# Will be set by main.py
service = None


@router.get("")
async def get_diagnostics():
    """Stop source file summary plus what the service currently has loaded."""
    diag = {"stop_source": describe_source(settings.naptan_file)}
    if service is None:
        diag["error"] = "Service not initialized"
        return diag
    diag.update(service.diagnostics())
    return diag
