#!/usr/bin/env python3
"""
FireFlow server entry point.

Starts the FastAPI backend with uvicorn on FIREFLOW_HOST:FIREFLOW_PORT
(defaults 127.0.0.1:8000), loading .env from the project root first.
"""

import os
import logging

from dotenv import load_dotenv

logger = logging.getLogger("FireFlow")


def main():
    load_dotenv()
    host = os.getenv("FIREFLOW_HOST", "127.0.0.1")
    port = int(os.getenv("FIREFLOW_PORT", "8000"))
    logger.info(f"Starting FireFlow on {host}:{port}")

    import uvicorn

    uvicorn.run(
        "fireflow.main:app",
        host=host,
        port=port,
        log_level=os.getenv("FIREFLOW_LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
