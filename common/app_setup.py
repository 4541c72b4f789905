"""
Reusable logging and print setup for all parts of the launcher.

Functions:
    setup_logging      - Configure and return a logger.
    set_print_logger   - Set the logger for print_and_log, print_warning and print_error.
    print_and_log      - Print and log an info message.
    print_warning      - Print and log a warning message.
    print_error        - Print and log an error message.
"""

import logging
import os
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape

LOG_TAG = "[RuntimeDependency]"

# Module-level variable to hold the logger for print_and_log, print_warning and print_error
_print_logger: Optional[logging.Logger] = None

_console = Console(highlight=False, soft_wrap=True)
_error_console = Console(stderr=True, highlight=False, soft_wrap=True)


def setup_logging(app_name: str = "runtime-launcher", loglevel: int = logging.INFO, logfile: Optional[str] = None) -> logging.Logger:
    """
    Set up logging for the application.
    Logs to a file in ~/.<app_name>/log.txt or to a custom logfile.
    Returns the configured logger.
    """
    logger = logging.getLogger()
    logger.setLevel(loglevel)
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(process)d %(name)s %(message)s')
    if logfile is None:
        log_dir = os.path.expanduser(f"~/.{app_name}")
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, "log.txt")
    handler = logging.FileHandler(logfile)

    # Remove any existing handlers
    for h in logger.handlers[:]:
        logger.removeHandler(h)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    set_print_logger(logger)
    logger.debug("Logger initialized for %s", app_name)
    return logger


def set_print_logger(logger: Optional[logging.Logger]):
    """
    Set the logger to be used by print_and_log, print_warning and print_error.
    setup_logging calls this already.
    """
    global _print_logger
    _print_logger = logger


def print_and_log(message: str):
    """
    Print to console and log as info.
    """
    _console.print(f"{LOG_TAG} {message}", markup=False)
    if _print_logger is not None:
        _print_logger.info(message)


def print_warning(message: str):
    """
    Print a yellow warning to stderr and log it at warning level.
    """
    _error_console.print(f"[yellow]{LOG_TAG} WARNING: {escape(message)}[/yellow]")
    if _print_logger is not None:
        _print_logger.warning(message)


def print_error(message: str, exc_info: bool = False):
    """
    Print and log an error message (stderr and error level), using the logger set by set_print_logger.
    With exc_info the current traceback is printed and logged as well.
    """
    _error_console.print(f"[bold red]{LOG_TAG} ERROR: {escape(message)}[/bold red]")
    if exc_info and sys.exc_info()[0] is not None:
        _error_console.print_exception()
    if _print_logger is not None:
        _print_logger.error(message, exc_info=exc_info)
