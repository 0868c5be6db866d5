"""
Allow running as: python -m casecraft

Delegates to the application factory in main.py.
"""
import uvicorn

from casecraft.main import create_app


def main() -> None:
    app = create_app()
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        reload=False,
        workers=1,
    )


if __name__ == "__main__":
    main()
