"""
Main entrypoint: FastAPI server with the background job scheduler on the same event loop.

The API lifespan starts the USDC indexer, score refresh, intent matcher and
GitHub re-verification jobs (disable with AGENTSCORE_RUN_JOBS=0). On SIGINT/SIGTERM
uvicorn shuts down, the lifespan stops the jobs and the process exits.

Env: AGENTSCORE_DB_PATH, BASE_RPC_URL, USDC_ADDRESS, API_HOST, API_PORT, LOG_LEVEL, etc.

API-only (no jobs): AGENTSCORE_RUN_JOBS=0 uvicorn backend_agentscore.api_server.server:app --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from backend_agentscore.agentscore_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Load settings and run the API server (jobs start from its lifespan)."""
    from backend_agentscore.config import get_settings

    settings = get_settings()

    from backend_agentscore.api_server.server import app
    import uvicorn

    logger.info(
        "main_server_starting",
        host=settings.api_host,
        port=settings.api_port,
        db_path=str(settings.db_path),
        run_jobs=settings.run_jobs,
    )
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
