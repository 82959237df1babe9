"""Process entry point: configure logging and run the API under uvicorn."""

import sys

import uvicorn

from handbook_kernel.api.app import create_app
from handbook_kernel.core.logging import configure_logging
from handbook_kernel.models.config import ServerConfig
from handbook_kernel.models.errors import ConfigError


def main() -> int:
    try:
        config = ServerConfig.from_env()
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    logger = configure_logging(config.log_level, config.log_dir)
    logger.info("API server listening on %s:%d", config.host, config.port)

    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
