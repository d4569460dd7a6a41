"""
Centralized logging configuration for the desktop backend.

Console output is colored for development and JSON-structured in production
(ENVIRONMENT=production). File output goes to rotating logs under LOG_DIR.
Secrets never reach a record: callers mask API keys with
security.mask_api_key before logging them.
"""

import logging
import logging.handlers
import sys
import os
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import json


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter used in production"""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_entry.update(record.extra_data)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Console formatter with colors for development"""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[92m',     # Green
        'WARNING': '\033[93m',  # Yellow
        'ERROR': '\033[91m',    # Red
        'CRITICAL': '\033[95m', # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        level = f"{color}{record.levelname}{self.RESET}"

        # Format: [TIMESTAMP] [LEVEL] [LOGGER] MESSAGE
        formatted = f"[{datetime.now().strftime('%H:%M:%S')}] [{level}] [{record.name}] {record.getMessage()}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


class LoggingConfig:
    """Centralized logging configuration manager"""

    def __init__(self,
                 log_level: str = "INFO",
                 log_dir: Optional[str] = None,
                 enable_file_logging: bool = True,
                 enable_console_logging: bool = True,
                 structured_logging: bool = False,
                 max_log_size_mb: int = 10,
                 backup_count: int = 5):
        """
        Initialize logging configuration.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (defaults to ./logs)
            enable_file_logging: Whether to log to files
            enable_console_logging: Whether to log to console
            structured_logging: Use JSON structured logging for production
            max_log_size_mb: Maximum size of each log file in MB
            backup_count: Number of backup log files to keep
        """
        self.log_level = getattr(logging, log_level.upper())
        self.log_dir = Path(log_dir) if log_dir else Path("./logs")
        self.enable_file_logging = enable_file_logging
        self.enable_console_logging = enable_console_logging
        self.structured_logging = structured_logging
        self.max_log_size_mb = max_log_size_mb
        self.backup_count = backup_count

        self._configured = False

    def configure(self) -> None:
        """Configure the root logger and third-party loggers"""
        if self._configured:
            return

        if self.enable_file_logging:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(self.log_level)

        if self.enable_console_logging:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(self.log_level)

            if self.structured_logging:
                console_handler.setFormatter(StructuredFormatter())
            else:
                console_handler.setFormatter(ColoredConsoleFormatter())

            root_logger.addHandler(console_handler)

        if self.enable_file_logging:
            self._setup_file_handlers(root_logger)

        self._configure_third_party_loggers()

        self._configured = True

        logger = logging.getLogger(__name__)
        logger.info("Logging system configured", extra={
            "extra_data": {
                "log_level": logging.getLevelName(self.log_level),
                "file_logging": self.enable_file_logging,
                "console_logging": self.enable_console_logging,
                "structured_logging": self.structured_logging,
                "log_dir": str(self.log_dir) if self.enable_file_logging else None
            }
        })

    def _setup_file_handlers(self, root_logger: logging.Logger) -> None:
        """Setup rotating file handlers: everything, plus errors on their own"""
        main_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / "chatdesk.log",
            maxBytes=self.max_log_size_mb * 1024 * 1024,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        main_handler.setLevel(self.log_level)

        error_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / "errors.log",
            maxBytes=self.max_log_size_mb * 1024 * 1024,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)

        if self.structured_logging:
            formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter(
                '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        main_handler.setFormatter(formatter)
        error_handler.setFormatter(formatter)

        root_logger.addHandler(main_handler)
        root_logger.addHandler(error_handler)

    def _configure_third_party_loggers(self) -> None:
        """Quiet chatty libraries"""
        third_party_configs = {
            'aiohttp': logging.WARNING,
            'websockets': logging.WARNING,
            'asyncio': logging.WARNING,
        }

        for logger_name, level in third_party_configs.items():
            logging.getLogger(logger_name).setLevel(level)


_logging_config: Optional[LoggingConfig] = None


def setup_logging(config_dict: Optional[Dict[str, Any]] = None) -> None:
    """
    Setup logging for the application.

    Args:
        config_dict: Configuration dictionary with logging settings
    """
    global _logging_config

    if config_dict is None:
        config_dict = {}

    is_production = os.getenv("ENVIRONMENT", "development").lower() == "production"

    defaults = {
        "log_level": os.getenv("LOG_LEVEL", "INFO" if is_production else "DEBUG"),
        "log_dir": os.getenv("LOG_DIR", "./logs"),
        "enable_file_logging": os.getenv("ENABLE_FILE_LOGGING", "true").lower() == "true",
        "enable_console_logging": os.getenv("ENABLE_CONSOLE_LOGGING", "true").lower() == "true",
        "structured_logging": is_production,
        "max_log_size_mb": int(os.getenv("MAX_LOG_SIZE_MB", "10")),
        "backup_count": int(os.getenv("LOG_BACKUP_COUNT", "5")),
    }

    merged_config = {**defaults, **config_dict}

    _logging_config = LoggingConfig(**merged_config)
    _logging_config.configure()


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Handlers are installed only by setup_logging, which the entry point calls.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str, **context) -> None:
    """Log a message with additional structured context data"""
    logger.log(level, message, extra={"extra_data": context})


def log_api_call(logger: logging.Logger, service: str, endpoint: str,
                 status_code: Optional[int], duration_ms: float, **context) -> None:
    """Log outbound API call metrics"""
    log_with_context(logger, logging.INFO, f"API call: {service} {endpoint}",
                     service=service, endpoint=endpoint, status_code=status_code,
                     duration_ms=round(duration_ms, 1), **context)


def log_error_with_context(logger: logging.Logger, error: Exception,
                           operation: str, **context) -> None:
    """Log error with full context and its traceback"""
    context.update(operation=operation, error_type=type(error).__name__)
    logger.error(f"Error in {operation}: {str(error)}", exc_info=error,
                 extra={"extra_data": context})
