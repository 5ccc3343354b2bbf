#!/usr/bin/env python3
"""
Interest Ledger Entry Point

Starts the FastAPI server with the ledger and custodian wired from
LEDGER_* environment configuration.
"""

import sys

import uvicorn

from interest_ledger.api import create_app
from interest_ledger.config import get_config
from interest_ledger.logging_config import setup_logging


def main() -> None:
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format, config.log_file)

    logger.info("Starting interest ledger API on %s:%s", config.api_host, config.api_port)
    try:
        uvicorn.run(
            create_app(),
            host=config.api_host,
            port=config.api_port,
            log_level=config.log_level.lower()
        )
    except KeyboardInterrupt:
        logger.info("Shutting down interest ledger API")
    except Exception:
        logger.exception("Error starting server")
        sys.exit(1)


if __name__ == "__main__":
    main()
