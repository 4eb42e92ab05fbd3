"""Run the llmgate gateway with uvicorn.

Configuration comes from the environment (optionally a ``.env`` file) and
``configs/config.yaml``; see ``configs/config.example.yaml``.
"""

import logging
import sys

import uvicorn

from llmgate import create_app, load_settings
from llmgate.core.exceptions import ConfigurationError

logger = logging.getLogger("llmgate")


def main() -> int:
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration: {exc.message}")
        return 1

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
