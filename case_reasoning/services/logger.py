# case_reasoning/services/logger.py
import logging
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _attach_handler(logger: logging.Logger, level: int) -> None:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(level)


class LoggerService:
    """Centralized logging service for agents"""

    def __init__(self, name: str = "case_reasoning", level: int = logging.INFO):
        self.name = name
        self.level = level
        self._logger = None

    def get_logger(self) -> logging.Logger:
        """Get or create a configured logger instance"""
        if self._logger is None:
            self._logger = logging.getLogger(self.name)
            _attach_handler(self._logger, self.level)
        return self._logger

    def _log(self, level: int, message: str, agent_name: Optional[str] = None):
        if agent_name:
            message = f"[{agent_name}] {message}"
        self.get_logger().log(level, message)

    def log_info(self, message: str, agent_name: Optional[str] = None):
        self._log(logging.INFO, message, agent_name)

    def log_warning(self, message: str, agent_name: Optional[str] = None):
        self._log(logging.WARNING, message, agent_name)

    def log_error(self, message: str, agent_name: Optional[str] = None):
        self._log(logging.ERROR, message, agent_name)
