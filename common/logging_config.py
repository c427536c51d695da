"""
Logging Configuration Utilities

Provides centralized logging setup with role-based formatting.
"""

import logging
import sys


def setup_logging(role: str, level: str = "INFO"):
    """
    Configure logging with role-based formatting.

    Args:
        role: Role identifier (e.g., "console_link", "bridge_sim")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        f'%(asctime)s - [{role}] %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Drop handlers from a previous call so lines are not duplicated
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # websockets logs every handshake at INFO
    logging.getLogger("websockets").setLevel(max(numeric_level, logging.WARNING))

    logging.info(f"Logging configured: role={role}, level={level}")
