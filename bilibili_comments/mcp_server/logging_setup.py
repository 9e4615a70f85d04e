"""
Logging configuration for the MCP server.

This module sets up logging for the server components. Console output always
goes to stderr because stdout carries protocol messages in stdio mode.
"""
import logging
import os
import sys
from typing import Optional
from logging.handlers import RotatingFileHandler
from pathlib import Path
import datetime

NOISY_LOGGERS = ("aiohttp", "uvicorn", "uvicorn.access", "fastapi")


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> Optional[Path]:
    """
    Set up logging for the MCP server.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Optional directory for rotating log files

    Returns:
        Path of the log file, or None when file logging is disabled
    """
    # Convert level string to logging level
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    # Create formatter
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to prevent duplicate logging
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(numeric_level)
    root_logger.addHandler(console_handler)

    log_file: Optional[Path] = None
    if log_dir:
        logs_path = Path(log_dir).expanduser()
        os.makedirs(logs_path, exist_ok=True)

        # Generate log filename with timestamp to make it unique per session
        timestamp = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_file = logs_path / f"mcp_server_{timestamp}.log"

        # Add file handler with rotation (10MB max size, keep 5 backup files)
        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(numeric_level)
        root_logger.addHandler(file_handler)

        # Add a symbolic link to the latest log for convenience
        latest_log_link = logs_path / "mcp_server_latest.log"
        try:
            if latest_log_link.is_symlink() or latest_log_link.exists():
                latest_log_link.unlink()
            os.symlink(log_file, latest_log_link)
        except OSError as e:
            # Don't fail logging setup just because of symlink issues
            root_logger.warning(f"Could not create symlink to latest log: {e}")

        root_logger.info(f"Logging to: {log_file}")

    # Quieten chatty libraries unless we're debugging
    library_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    root_logger.debug(f"Logging initialized at level: {logging.getLevelName(numeric_level)}")
    return log_file
