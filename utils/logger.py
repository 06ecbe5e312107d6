# ============================================================
# nlql - Natural Language SQL Terminal
# utils/logger.py - Loguru sinks
# ============================================================

import sys
from pathlib import Path
from loguru import logger


def setup_logger(log_file: str = "logs/nlql.log", level: str = "INFO"):
    """
    Route all logging to a rotating file.

    Only CRITICAL records reach stderr; anything louder would tear
    through the full-screen display.
    """
    logger.remove()

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_file,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {module}:{function}:{line} | {message}",
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )

    logger.add(
        sys.stderr,
        level="CRITICAL",
        format="{time:HH:mm:ss} | {level} | {message}",
    )

    logger.info(f"nlql logger initialized ({level.upper()})")
    return logger
