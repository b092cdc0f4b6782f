"""
Web service launcher.
"""

import os

import uvicorn
from dotenv import load_dotenv


def serve(host: str | None = None, port: int | None = None, reload: bool | None = None) -> None:
    """Run the FastAPI service under uvicorn.

    ``.env`` is loaded first; explicit arguments override the
    ``STOCKPRISM_HOST``, ``STOCKPRISM_PORT`` and ``STOCKPRISM_RELOAD`` variables.
    """
    load_dotenv()

    stockprism_host = host or os.getenv("STOCKPRISM_HOST", "0.0.0.0")
    stockprism_port = port or int(os.getenv("STOCKPRISM_PORT", "8000"))
    stockprism_reload = reload if reload is not None else os.getenv("STOCKPRISM_RELOAD", "false").lower() == "true"

    uvicorn.run(
        "stockprism.web.app:create_app",
        factory=True,
        host=stockprism_host,
        port=stockprism_port,
        reload=stockprism_reload,
        log_level="info",
    )


if __name__ == "__main__":
    serve()
