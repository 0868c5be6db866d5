from fastapi import APIRouter, FastAPI

from casecraft.core.config import get_settings

from . import export, files, generate, health, models, testcases

# (router, prefix, tag) in the order they appear in the OpenAPI docs.
_ROUTERS = (
    (health.router, "", "health"),
    (files.router, "", "files"),
    (generate.router, "/generate", "generate"),
    (models.router, "", "models"),
    (testcases.router, "/test-cases", "test-cases"),
    (export.router, "", "export"),
)


def get_api_router() -> APIRouter:
    """
    Aggregate and return the root API router.
    """
    root_router = APIRouter()
    for router, prefix, tag in _ROUTERS:
        root_router.include_router(router, prefix=prefix, tags=[tag])
    return root_router


def register_routes(app: FastAPI) -> None:
    """
    Mount every route under the configured API prefix (``/api`` by default).
    """
    app.include_router(get_api_router(), prefix=get_settings().api_prefix)
