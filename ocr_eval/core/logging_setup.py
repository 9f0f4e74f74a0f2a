"""Logging setup for the OCR evaluation toolkit.

Configures the Loguru logger with:
- Colorized console output
- Rotating application and error logs
- Optional structured JSON log for automated parsing

Nothing is configured on import; applications call setup_logging() once
at startup. Library code only ever does `from loguru import logger`.
"""

import sys
from pathlib import Path
from typing import Union

from loguru import logger


LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def setup_logging(
    log_level: str = "INFO",
    log_dir: Union[str, Path] = Path("logs"),
    enable_file_logging: bool = False,
    serialize: bool = False
) -> None:
    """Configure application logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        enable_file_logging: Whether to write logs to files
        serialize: Also write a JSON-lines log (requires file logging)

    Raises:
        ValueError: If log_level is not a Loguru level name
    """
    log_level = log_level.upper()
    if log_level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {list(LOG_LEVELS)}, got '{log_level}'")

    # Remove default handler
    logger.remove()

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stderr,
        format=console_format,
        level=log_level,
        colorize=True,
        backtrace=True,
        diagnose=False
    )

    if enable_file_logging:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_format = (
            "{time:YYYY-MM-DD HH:mm:ss} | "
            "{level: <8} | "
            "{name}:{function}:{line} - "
            "{message}"
        )

        # Main application log
        logger.add(
            log_dir / "ocr_eval.log",
            format=file_format,
            level=log_level,
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            enqueue=True  # sampler thread logs too
        )

        # Errors only, full tracebacks
        logger.add(
            log_dir / "errors.log",
            format=file_format,
            level="ERROR",
            rotation="5 MB",
            retention="60 days",
            compression="zip",
            backtrace=True,
            diagnose=True,
            enqueue=True
        )

        if serialize:
            logger.add(
                log_dir / "structured.jsonl",
                format="{message}",
                level=log_level,
                rotation="20 MB",
                retention="30 days",
                compression="zip",
                serialize=True,
                enqueue=True
            )

    logger.info(
        f"Logging configured: level={log_level}, file_logging={enable_file_logging}, "
        f"structured={serialize and enable_file_logging}"
    )
