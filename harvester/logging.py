"""
Structured logging for the harvester.

This module provides JSON structured logging with context tracking,
operation timing, sensitive data filtering, and a console setup that keeps
routine output on stdout and errors on stderr.
"""

import logging
import json
import sys
import time
import re
from typing import Dict, Any, Optional
from contextlib import contextmanager
from datetime import datetime, timezone


class SensitiveDataFilter:
    """Filter credentials and session material from log messages."""

    def __init__(self):
        self.sensitive_patterns = [
            (re.compile(r'passphrase=([^&\s]+)', re.IGNORECASE), 'passphrase=***'),
            (re.compile(r'password["\']?\s*[:=]\s*["\']?([^"\'\s&]+)', re.IGNORECASE), 'password=***'),
            (re.compile(r'__RequestVerificationToken=([^&\s]+)'), '__RequestVerificationToken=***'),
            (re.compile(r'mkt_tok=([^&\s]+)'), 'mkt_tok=***'),
            (re.compile(r'\.ADAuthCookie=([^;\s]+)'), '.ADAuthCookie=***'),
        ]
        self.sensitive_keys = {
            'password', 'passphrase', 'token', 'cookie', 'authcookie', 'mkt_tok',
            '__requestverificationtoken',
        }

    def filter_message(self, message: str) -> str:
        """Filter sensitive data from a message string."""
        filtered = message
        for pattern, replacement in self.sensitive_patterns:
            filtered = pattern.sub(replacement, filtered)
        return filtered

    def filter_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Filter sensitive data from a dictionary."""
        filtered = {}
        for key, value in data.items():
            if key.lower() in self.sensitive_keys:
                filtered[key] = '***'
            elif isinstance(value, str):
                filtered[key] = self.filter_message(value)
            elif isinstance(value, dict):
                filtered[key] = self.filter_dict(value)
            else:
                filtered[key] = value
        return filtered


class StructuredLogger:
    """Structured logger with per-component context."""

    def __init__(self, component: str):
        self.component = component
        self.logger = logging.getLogger(f"harvester.{component}")
        self.context: Dict[str, Any] = {}
        self.filter = SensitiveDataFilter()

    def add_context(self, key: str, value: Any) -> None:
        """Add context information to all subsequent log messages."""
        self.context[key] = value

    def _prepare_log_data(self, message: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'component': self.component,
            'message': self.filter.filter_message(message),
            'context': self.filter.filter_dict(self.context.copy())
        }

        if extra:
            log_data['extra'] = self.filter.filter_dict(extra)

        return log_data

    def _log(self, level: int, message: str, extra: Optional[Dict[str, Any]] = None, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        log_data = self._prepare_log_data(message, extra)
        self.logger.log(level, json.dumps(log_data, default=str), **kwargs)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log(logging.ERROR, message, extra)

    @contextmanager
    def time_operation(self, operation_name: str):
        """Context manager to time operations and log performance."""
        start_time = time.time()
        self.debug(f"Starting {operation_name}", {"operation": operation_name})

        try:
            yield
            duration = time.time() - start_time
            self.info(f"Operation {operation_name} completed successfully", {
                "operation": operation_name,
                "duration_seconds": round(duration, 3),
                "status": "success"
            })
        except Exception as e:
            duration = time.time() - start_time
            self.error(f"Operation {operation_name} failed", {
                "operation": operation_name,
                "duration_seconds": round(duration, 3),
                "status": "failure",
                "error": str(e)
            })
            raise

    def log_exception(self, exception: Exception, extra: Optional[Dict[str, Any]] = None):
        """Log exception with its kind, context and traceback."""
        log_data = self._prepare_log_data(f"Exception occurred: {str(exception)}", extra)
        log_data['exception'] = {
            'type': type(exception).__name__,
            'message': str(exception)
        }

        kind = getattr(exception, 'kind', None)
        if kind is not None:
            log_data['exception']['kind'] = kind.value
        if getattr(exception, 'context', None):
            log_data['exception']['context'] = self.filter.filter_dict(exception.context)

        self.logger.error(json.dumps(log_data, default=str), exc_info=True)


class _MaxLevelFilter(logging.Filter):
    """Pass records at or below a level."""

    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


def configure_logging(
    level: str = "INFO",
    format: str = "json",
    output: str = "console",
    filename: Optional[str] = None
):
    """Configure the harvester logging system.

    Console output routes DEBUG through WARNING to stdout and ERROR and above
    to stderr.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("harvester")
    logger.setLevel(log_level)
    logger.handlers.clear()

    if format == "json":
        formatter = logging.Formatter('%(message)s')
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    if output in ["console", "both"]:
        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setFormatter(formatter)
        stdout_handler.addFilter(_MaxLevelFilter(logging.WARNING))
        logger.addHandler(stdout_handler)

        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        stderr_handler.setLevel(logging.ERROR)
        logger.addHandler(stderr_handler)

    if output in ["file", "both"] and filename:
        file_handler = logging.FileHandler(filename)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
