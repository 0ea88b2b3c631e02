from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from typing import Optional


def setup_logging(debug: bool = False, log_dir: Optional[str] = None, log_name: str = "endless") -> logging.Logger:
    """Configure the root logger once for the app.

    Console output always goes to stdout; pass `log_dir` to also write a
    timestamped file with thread names (useful when chasing worker issues).
    """
    level = logging.DEBUG if debug else logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)

    # Drop handlers from a previous call so messages aren't duplicated
    if logger.hasHandlers():
        logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("[%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(console)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = os.path.join(log_dir, f"{log_name}_{timestamp}.log")
        file_handler = logging.FileHandler(filename, mode="w")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)
        logger.info("logging to %s", filename)

    return logger
