from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from casecraft import __version__
from casecraft.api.dependencies import get_store
from casecraft.core.config import get_settings
from casecraft.services.testcase_store import TestCaseStore


router = APIRouter()


@router.get("/health", summary="Service health check")
async def health_check(store: TestCaseStore = Depends(get_store)) -> dict:
    """
    Liveness probe. ``storage.initialized`` is false until the first save
    creates the test case file.
    """
    settings = get_settings()

    return {
        "status": "ok",
        "service": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "storage": {
            "path": str(store.path),
            "initialized": store.path.exists(),
        },
        "time": datetime.now(timezone.utc).isoformat(),
    }
