"""
Single entrypoint for the CaseCraft service.

Run from the project root: uvicorn casecraft.main:app --reload
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from casecraft import __version__
from casecraft.api import register_routes
from casecraft.core.logging_config import configure_logging
from casecraft.services.testcase_store import StorageError

logger = logging.getLogger(__name__)


async def _storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error(
        "Storage failure on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Test case storage failed. See server logs for details."},
    )


def create_app() -> FastAPI:
    """
    Application factory for the FastAPI app.
    """
    configure_logging()

    app = FastAPI(
        title="CaseCraft",
        description=(
            "Backend service that turns requirements and uploaded user stories "
            "into structured manual test cases with OpenAI or a local Ollama, "
            "stores them in a JSON file, and exports them as CSV, Excel, or JSON."
        ),
        version=__version__,
    )

    app.add_exception_handler(StorageError, _storage_error_handler)
    register_routes(app)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "casecraft.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
