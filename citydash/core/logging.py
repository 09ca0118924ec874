"""
Logging configuration for the CityDash backend
Provides structured logging for authentication and security events
"""

import logging
import sys
from typing import Optional


class SecurityLogger:
    """Logger wrapper that renders security event context on one line"""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self._setup_logger()

    def _setup_logger(self):
        """Setup logger with appropriate handlers and formatters"""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)

            formatter = logging.Formatter(
                '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
                '"module": "%(name)s", "message": "%(message)s"}'
            )
            handler.setFormatter(formatter)

            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def _render(message: str, extra: Optional[dict]) -> str:
        if not extra:
            return message
        context = " ".join(f"{key}={value}" for key, value in sorted(extra.items()))
        return f"{message} | {context}"

    def info(self, message: str, extra: Optional[dict] = None):
        self.logger.info(self._render(message, extra))

    def warning(self, message: str, extra: Optional[dict] = None):
        self.logger.warning(self._render(message, extra))

    def error(self, message: str, extra: Optional[dict] = None):
        self.logger.error(self._render(message, extra))

    def exception(self, message: str, extra: Optional[dict] = None):
        """Log error message with the active exception traceback"""
        self.logger.exception(self._render(message, extra))

    def debug(self, message: str, extra: Optional[dict] = None):
        self.logger.debug(self._render(message, extra))


def get_logger(name: str) -> SecurityLogger:
    """Get logger instance for the specified module"""
    return SecurityLogger(name)
