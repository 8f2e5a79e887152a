import logging
import os

from fastapi import FastAPI

from buildpack_registry import __version__
from buildpack_registry.api.registry import router as registry_router

LOG_LEVEL_ENV_VAR = "BUILDPACK_REGISTRY_LOG_LEVEL"

# Configure logging
logging.basicConfig(
    level=os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Buildpack Registry Cache",
    version=__version__,
    description="Resolves buildpack coordinates against a locally cached registry index.",
)

app.include_router(registry_router, prefix="/registry", tags=["registry"])


@app.get("/health")
def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


if __name__ == "__main__":
    """
    Allow running `python -m buildpack_registry.main` to start the Uvicorn
    development server.
    """
    import uvicorn

    uvicorn.run(
        "buildpack_registry.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
