"""Entry point for running XO Arena via ``python -m xoarena``."""

from __future__ import annotations

import os

import uvicorn


def main() -> None:
    """Start the FastAPI-powered XO Arena web server."""

    host = os.environ.get("XOARENA_HOST", "0.0.0.0")
    port = int(os.environ.get("XOARENA_PORT", "8000"))
    uvicorn.run("xoarena.ui:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
