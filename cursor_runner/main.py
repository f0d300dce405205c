"""Service entry point: ``python -m cursor_runner.main``."""

from __future__ import annotations

import logging
import os

from cursor_runner.api.fastapi_integration import create_app
from cursor_runner.config import RunnerSettings
from cursor_runner.execution.infrastructure.factory import build_orchestrator

DEFAULT_PORT = 3001


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
    )


if __name__ == "__main__":
    import uvicorn

    settings = RunnerSettings.from_env()
    configure_logging(settings.log_level)

    app = create_app(build_orchestrator(settings))
    port = int(os.environ.get("PORT") or DEFAULT_PORT)
    logging.info("Starting cursor-runner on port %d (max concurrent %d)", port, settings.max_concurrent)

    uvicorn.run(app, host="0.0.0.0", port=port, log_config=None)
