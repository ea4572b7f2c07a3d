"""
Process entry point for the transcription relay.

Responsibilities:
- Load .env
- Read host/port from configuration
- Run the ASGI app under uvicorn

Auto-reload is off unless RELOAD is set; ENV alone never turns it on.
"""

from __future__ import annotations

from typing import Any

import uvicorn
from dotenv import load_dotenv

from config import AppConfig
from observability.logger import log_event, now_ms


def uvicorn_options(config: AppConfig) -> dict[str, Any]:
    """Keyword arguments for uvicorn.run() derived from the config."""
    return {
        "host": config.host,
        "port": config.port,
        "log_level": config.log_level.lower(),
        "reload": config.reload,
    }


def main() -> None:
    """Start uvicorn on the configured host and port."""
    load_dotenv()
    config = AppConfig.load_from_env()
    options = uvicorn_options(config)

    log_event({
        "ts_ms": now_ms(),
        "event_type": "SERVER_STARTING",
        "env": config.env,
        "host": config.host,
        "port": config.port,
        "reload": config.reload,
    })

    uvicorn.run("server.asgi:app", **options)


if __name__ == "__main__":
    main()
