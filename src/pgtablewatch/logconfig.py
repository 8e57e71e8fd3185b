import logging
import os

logger = logging.getLogger("pgtablewatch")
logger.setLevel(level=os.environ.get("LOGLEVEL", "INFO").upper())

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(_handler)
