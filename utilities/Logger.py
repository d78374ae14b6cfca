"""
Logger System for StyleBlend
One console handler per component logger, optional shared file output
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGS_DIR = Path("logs")


class Logger:
    """
    Builds component loggers once and keeps track of them so levels and
    file outputs can be changed for all of them at the same time.
    """

    _configured_loggers = set()

    @staticmethod
    def setup_logger(
        logger_name: str = "StyleBlend",
        log_file: Optional[str] = None,
        log_level: Union[int, str] = logging.INFO,
        format_string: Optional[str] = None
    ) -> logging.Logger:
        """
        Set up a logger with console and optional file logging.

        :param logger_name: Name of the logger, usually the component name.
        :param log_file: Name of the log file under logs/, or a path (optional).
        :param log_level: Logging level as a number or a name such as "DEBUG".
        :param format_string: Custom format string.
        :return: Configured logger instance.
        """
        level = Logger.parse_level(log_level)
        logger = logging.getLogger(logger_name)

        if logger_name not in Logger._configured_loggers:
            logger.handlers.clear()
            logger.setLevel(level)

            formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

            if log_file:
                Logger.add_file_output(logger_name, log_file, level)

            # Avoid duplicate records through the root logger
            logger.propagate = False
            Logger._configured_loggers.add(logger_name)

        return logger

    @staticmethod
    def parse_level(level: Union[int, str]) -> int:
        """
        Turn a level name from the configuration into a logging level.

        :param level: Level number or name.
        :return: Logging level number.
        """
        if isinstance(level, int):
            return level
        resolved = logging.getLevelName(str(level).upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level '{level}'")
        return resolved

    @staticmethod
    def resolve_log_path(log_file: str) -> Path:
        """Bare file names go under logs/, anything with a directory is used as given."""
        if "/" in log_file or "\\" in log_file:
            return Path(log_file)
        return LOGS_DIR / log_file

    @staticmethod
    def set_level_all(level: Union[int, str]):
        """
        Set logging level for all configured loggers.

        :param level: New logging level.
        """
        level = Logger.parse_level(level)
        for logger_name in Logger._configured_loggers:
            logger = logging.getLogger(logger_name)
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)

    @staticmethod
    def add_file_output(logger_name: str, log_file: str, level: Union[int, str] = logging.INFO):
        """
        Add file output to an existing logger. Adding the same file twice is a no-op.

        :param logger_name: Name of the logger.
        :param log_file: Log file name or path.
        :param level: Logging level for the file handler.
        """
        logger = logging.getLogger(logger_name)
        log_file_path = Logger.resolve_log_path(log_file)

        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(log_file_path):
                return

        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file_path, mode='a', encoding='utf-8')
        file_handler.setLevel(Logger.parse_level(level))

        if logger.handlers:
            formatter = logger.handlers[0].formatter
        else:
            formatter = logging.Formatter(DEFAULT_FORMAT)

        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.debug(f"Added file output: {log_file_path}")

    @staticmethod
    def add_file_output_all(log_file: str, level: Union[int, str] = logging.INFO):
        """Send every configured logger to the same log file."""
        for logger_name in sorted(Logger._configured_loggers):
            Logger.add_file_output(logger_name, log_file, level)

    @staticmethod
    def list_loggers():
        """
        List all configured loggers.

        :return: Set of logger names.
        """
        return Logger._configured_loggers.copy()
