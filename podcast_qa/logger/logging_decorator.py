"""
Centralized Logging Utilities and Decorators

Provides logging setup and function decorators shared by every podcast_qa
module. Decorators work on both plain functions and coroutine functions; for
coroutines the elapsed time covers the awaited work.

Usage:
    from podcast_qa.logger import setup_logging, log_function

    logger = setup_logging(
        logger_name="segmenter",
        log_file="logs/segmenter.log",
        verbose=True
    )

    @log_function(logger_name="transcription", log_execution_time=True)
    async def transcribe_episode(audio_path):
        ...
"""

import functools
import inspect
import logging
import time
from pathlib import Path
from typing import Optional, Callable, Any


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    logger_name: str,
    log_file: str = "logs/app.log",
    verbose: bool = False,
    level: int = logging.INFO,
) -> logging.Logger:
    """
    Set up logging with file and optional console handlers.

    Args:
        logger_name: Name for the logger (e.g., "segmenter")
        log_file: Path to log file (default: "logs/app.log")
        verbose: If True, add console handler with DEBUG level (default: False)
        level: Base logging level (default: logging.INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Avoid adding multiple handlers if already configured
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG if verbose else level)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        logger.addHandler(console_handler)

    return logger


def _resolve_logger(
    logger_name: str, func: Callable, log_file: Optional[str], level: int
) -> logging.Logger:
    if log_file:
        return setup_logging(
            logger_name=f"{logger_name}.{func.__name__}",
            log_file=log_file,
            level=level,
        )
    logger = logging.getLogger(logger_name)
    if not logger.handlers:
        logger = setup_logging(logger_name, level=level)
    return logger


def _call_message(func_name: str, log_args: bool, args: tuple, kwargs: dict) -> str:
    message = f"Calling {func_name}"
    if log_args and (args or kwargs):
        args_repr = [repr(a) for a in args]
        kwargs_repr = [f"{k}={v!r}" for k, v in kwargs.items()]
        message += f" with args: {', '.join(args_repr + kwargs_repr)}"
    return message


def _completion_message(
    func_name: str,
    elapsed: float,
    result: Any,
    log_execution_time: bool,
    log_result: bool,
) -> str:
    message = f"Completed {func_name}"
    if log_execution_time:
        message += f" in {elapsed:.2f}s"
    if log_result:
        message += f" with result: {result!r}"
    return message


def log_function(
    logger_name: Optional[str] = None,
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    log_args: bool = False,
    log_result: bool = False,
    log_execution_time: bool = True,
) -> Callable:
    """
    Decorator to log function entry, exit, execution time, and exceptions.

    Exceptions are logged with traceback and re-raised unchanged.

    Args:
        logger_name: Custom logger name (if None, uses the decorated function's module name)
        log_file: Optional custom log file path (if None, uses existing logger config)
        level: Log level for entry/exit messages (default: logging.INFO)
        log_args: If True, log function arguments (default: False)
        log_result: If True, log return value (default: False)
        log_execution_time: If True, log execution duration (default: True)

    Returns:
        Decorated function with logging
    """

    def decorator(func: Callable) -> Callable:
        name = logger_name or func.__module__
        func_name = func.__name__

        def log_failure(logger: logging.Logger, start_time: float, e: Exception):
            elapsed = time.time() - start_time
            logger.error(
                f"Exception in {func_name} after {elapsed:.2f}s: {type(e).__name__}: {e}",
                exc_info=True,
            )

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs) -> Any:
                logger = _resolve_logger(name, func, log_file, level)
                logger.log(level, _call_message(func_name, log_args, args, kwargs))
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    log_failure(logger, start_time, e)
                    raise
                logger.log(
                    level,
                    _completion_message(
                        func_name,
                        time.time() - start_time,
                        result,
                        log_execution_time,
                        log_result,
                    ),
                )
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = _resolve_logger(name, func, log_file, level)
            logger.log(level, _call_message(func_name, log_args, args, kwargs))
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log_failure(logger, start_time, e)
                raise
            logger.log(
                level,
                _completion_message(
                    func_name,
                    time.time() - start_time,
                    result,
                    log_execution_time,
                    log_result,
                ),
            )
            return result

        return wrapper

    return decorator
