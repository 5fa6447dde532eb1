import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from ecosystems_lookup import __version__
from ecosystems_lookup.api.tools import router as tools_router
from ecosystems_lookup.core.dependencies import get_local_store, get_resolver, get_settings
from ecosystems_lookup.core.errors import EcosystemsError, internal_error
from ecosystems_lookup.domain.models import HealthReport
from ecosystems_lookup.services.resolver import PackageResolver

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Ecosystems package lookup",
    version=__version__,
    description="Package metadata from a local ecosyste.ms snapshot with packages.ecosyste.ms API fallback.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Open the local snapshot (if any) once for the lifetime of the process.
    """
    store = get_local_store()
    if not store.available:
        logger.info("Search and database info are unavailable without a local snapshot")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    get_local_store().close()


@app.exception_handler(EcosystemsError)
async def ecosystems_error_handler(request: Request, exc: EcosystemsError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.to_dict(), "text": str(exc)},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error for {request.method} {request.url.path}: {exc}", exc_info=True)
    err = internal_error(str(exc))
    return JSONResponse(
        status_code=err.http_status,
        content={"error": err.to_dict(), "text": str(err)},
    )


@app.get("/health")
async def health(resolver: PackageResolver = Depends(get_resolver)) -> HealthReport:
    """
    Database connectivity and API availability.
    """
    return await resolver.health_check()


app.include_router(tools_router, prefix="/tools", tags=["tools"])


if __name__ == "__main__":
    """
    Allow running `python -m ecosystems_lookup.main` to start the Uvicorn
    development server.
    """
    import uvicorn

    uvicorn.run(
        "ecosystems_lookup.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
