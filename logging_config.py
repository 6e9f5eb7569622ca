"""
Centralized logging configuration for Vision Print Orders.

Every log line carries the name of the thread that produced it. The print
wizard does real work off the request thread (debounced image validation,
order submission racing its safety timer), so the thread name is usually the
quickest way to tell which side of a race wrote a message.

Features:
    - Automatic thread name in all log messages
    - Console output (always enabled)
    - Rotating file logs (optional, for production)
    - Separate error log for ERROR/CRITICAL messages
    - Helper functions for getting loggers with consistent naming

Log Format:
    2026-10-19 10:15:30 [INFO    ] [MainThread] vision_print.app - Starting application
    2026-10-19 10:15:31 [DEBUG   ] [Validate-3f2a] vision_print.services.order_wizard - Validation gen=4 applied
    2026-10-19 10:15:32 [INFO    ] [Submit-a1b2c3d4] vision_print.order - [order a1b2c3d4] Order created

Usage:
    # At application startup
    from logging_config import setup_logging, get_logger

    setup_logging(log_level=logging.INFO, enable_file_logging=True)

    # In modules
    logger = get_logger(__name__)
    logger.info("This message includes thread context automatically")

    # For submission threads, keyed by idempotency key
    order_logger = get_order_logger("a1b2c3d4")
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "vision_print"


# =============================================================================
# THREAD CONTEXT FILTER
# =============================================================================

class ThreadContextFilter(logging.Filter):
    """
    Logging filter that adds thread context to all log records.

    Adds ``thread_name`` and ``thread_id`` to each record so the format
    string can show which thread produced the message.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current_thread = threading.current_thread()
        record.thread_name = current_thread.name
        record.thread_id = threading.get_ident()

        # Never drops records, only decorates them
        return True


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(
    app_name: str = APP_LOGGER_NAME,
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
) -> logging.Logger:
    """
    Configure application logging with thread context.

    This sets up:
    1. Console handler (always enabled)
    2. Rotating file handler (optional)
    3. Error file handler (optional) - ERROR/CRITICAL only
    4. Thread context filter on every handler

    Args:
        app_name: Name of the root application logger
        log_level: Minimum log level (default: INFO)
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to write to log files

    Returns:
        Configured application logger
    """
    logger = logging.getLogger(app_name)
    logger.setLevel(log_level)
    logger.propagate = False

    # Allows re-configuration (tests call create_app repeatedly)
    logger.handlers.clear()

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    thread_filter = ThreadContextFilter()

    # ---------------------------------------------------------------------
    # Console Handler (always enabled)
    # ---------------------------------------------------------------------
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    # ---------------------------------------------------------------------
    # File Handlers (optional)
    # ---------------------------------------------------------------------
    if enable_file_logging:
        if log_dir is None:
            log_dir = Path(__file__).parent / "logs"

        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{app_name}.log"
        file_handler = RotatingFileHandler(
            filename=app_log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB per file
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(thread_filter)
        logger.addHandler(file_handler)

        error_log_file = log_dir / f"{app_name}_error.log"
        error_handler = RotatingFileHandler(
            filename=error_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        error_handler.addFilter(thread_filter)
        logger.addHandler(error_handler)

        logger.info(f"File logging enabled: {app_log_file}")

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


# =============================================================================
# LOGGER FACTORY FUNCTIONS
# =============================================================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger under the application namespace.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger that inherits the handlers installed by setup_logging()

    Example:
        # In services/order_store.py
        logger = get_logger(__name__)
        # Logger name: "vision_print.services.order_store"
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"

    return logging.getLogger(name)


ORDER_LOGGER_NAME = f"{APP_LOGGER_NAME}.order"


class OrderLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every message with the order's short idempotency key."""

    def process(self, msg, kwargs):
        return f"[order {self.extra['order_key']}] {msg}", kwargs


def get_order_logger(idempotency_key: str) -> logging.LoggerAdapter:
    """
    Get a logger for a single order submission.

    All orders share the ``vision_print.order`` logger; the adapter puts the
    first 8 characters of the idempotency key in front of each message, so
    every attempt for the same order (including retries after a timeout)
    can be grepped together without registering a logger per key.

    Example:
        order_logger = get_order_logger("a1b2c3d4-e5f6-7890-...")
        order_logger.info("Order created")
        # vision_print.order - [order a1b2c3d4] Order created
    """
    return OrderLoggerAdapter(
        logging.getLogger(ORDER_LOGGER_NAME), {"order_key": idempotency_key[:8]}
    )


def set_thread_name(name: str) -> None:
    """
    Set the name of the current thread.

    This name appears in log messages in the [thread_name] field.

    Example:
        set_thread_name(f"Submit-{key[:8]}")
    """
    threading.current_thread().name = name
