import logging
import sys

import uvicorn

from x402_avm.app import create_app
from x402_avm.config import ConfigError, load_settings

logger = logging.getLogger("x402_avm")


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Invalid configuration: {e}")
        return 1

    logging.basicConfig(level=settings.log_level)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
