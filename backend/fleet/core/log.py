import logging

from fleet.core import config


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="[%(levelname)s] %(name)s: %(message)s",
    )
