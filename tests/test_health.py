import asyncio

from httpx import ASGITransport, AsyncClient

from casecraft import __version__
from casecraft.main import create_app


async def _get_health():
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.get("/api/health")


def test_health_ok():
    response = asyncio.run(_get_health())
    assert response.status_code == 200
    body = response.json()
    assert body.get("status") == "ok"
    assert body["service"] == "casecraft"
    assert body["version"] == __version__
    assert "environment" in body
    assert body["storage"]["path"].endswith("test-cases.json")
    assert isinstance(body["storage"]["initialized"], bool)
