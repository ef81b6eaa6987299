"""
Centralized Logging Configuration for the HR matching engine
"""
import functools
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-34s | %(funcName)-20s:%(lineno)-4d | %(message)s",
}

# ENVIRONMENT -> (level, file logging, format); level None means LOG_LEVEL
ENVIRONMENT_PROFILES = {
    "production": (None, True, "detailed"),
    "development": ("DEBUG", True, "detailed"),
    "testing": ("WARNING", False, "simple"),
}


def _rotating_file(filename: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(filename),
        "maxBytes": 10 * 1024 * 1024,
        "backupCount": 5,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    log_file: str = None,
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Configure the root and uvicorn loggers via dictConfig

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (defaults to $LOG_DIR/hrmatch_<date>.log)
        enable_console: Log to stdout
        enable_file: Log to a rotating file plus a separate errors file
        format_style: 'simple' or 'detailed'
    """
    stamp = datetime.now().strftime('%Y%m%d')
    log_dir = Path(os.getenv("LOG_DIR", "logs"))

    handlers: Dict[str, Any] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": format_style if format_style in FORMATS else "detailed",
            "stream": "ext://sys.stdout",
        }
    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_file or log_dir / f"hrmatch_{stamp}.log"
        handlers["file"] = _rotating_file(log_file, level)
        handlers["error_file"] = _rotating_file(log_dir / f"hrmatch_errors_{stamp}.log", "ERROR")

    names = list(handlers)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {style: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for style, fmt in FORMATS.items()},
        "handlers": handlers,
        "loggers": {
            "": {"level": level, "handlers": names, "propagate": False},
            "uvicorn": {"level": "INFO", "handlers": [n for n in names if n != "error_file"], "propagate": False},
            "pdfminer": {"level": "ERROR", "handlers": [], "propagate": True},
        },
    })

    logger = logging.getLogger("hrmatch.logging")
    logger.info(f"Logging configured - Level: {level}, Console: {enable_console}, File: {enable_file}")
    if enable_file:
        logger.info(f"Log file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """Logger under the hrmatch namespace; module names already inside it are kept as-is"""
    if name.startswith("hrmatch"):
        return logging.getLogger(name)
    return logging.getLogger(f"hrmatch.{name}")


def log_api_call(operation: str):
    """
    Decorator to log API endpoint calls
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            logger = get_logger(f"api.{func.__module__}")
            start_time = time.time()

            logger.info(f"API {operation} started - {func.__name__}")

            try:
                result = await func(*args, **kwargs)
                execution_time = time.time() - start_time
                logger.info(f"API {operation} completed in {execution_time:.3f}s", extra={"execution_time": execution_time})
                return result
            except Exception as e:
                execution_time = time.time() - start_time
                logger.error(f"API {operation} failed after {execution_time:.3f}s: {str(e)}",
                             extra={"execution_time": execution_time, "error": str(e)})
                raise

        return wrapper
    return decorator


def configure_for_environment():
    """Configure logging from ENVIRONMENT and LOG_LEVEL"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    level, enable_file, format_style = ENVIRONMENT_PROFILES.get(environment, (None, True, "detailed"))
    setup_logging(level=level or log_level, enable_file=enable_file, format_style=format_style)


class PerformanceMonitor:
    """Context manager for monitoring performance with logging"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.start_time = None
        self.elapsed_ms = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.debug(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.time() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms (exceeded threshold {self.threshold_ms}ms)")
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
