"""Layered raster image editor core."""

import logging


__version__ = "0.1.0"


def configure_logging(level=logging.INFO):
    """Install a basic stderr handler for applications embedding the editor."""

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
