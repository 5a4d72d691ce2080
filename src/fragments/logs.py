"""Logging setup shared by the demo and embedding applications."""

import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
