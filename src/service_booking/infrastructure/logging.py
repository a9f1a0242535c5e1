"""Structured JSON logging configuration for the Service Booking API."""

import logging
import logging.handlers
import json
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Optional
from contextvars import ContextVar
from pathlib import Path
import os


SERVICE_NAME = "service-booking-api"

# Context variable for correlation ID tracking across async requests
correlation_id_context: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

# Standard LogRecord attributes that never go into the "extra" block
_RESERVED_ATTRIBUTES = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'message', 'exc_info',
    'exc_text', 'stack_info', 'correlation_id', 'taskName'
})


class CorrelationIDFilter(logging.Filter):
    """Add correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation ID to the log record."""
        record.correlation_id = correlation_id_context.get() or "unknown"
        return True


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        # Base log entry structure
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, 'correlation_id', 'unknown'),
        }

        # Add module and function info
        if record.module:
            log_entry["module"] = record.module
        if record.funcName and record.funcName != '<module>':
            log_entry["function"] = record.funcName
        if record.lineno:
            log_entry["line"] = record.lineno

        # Add exception information if present
        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        # Add extra fields from the log record
        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRIBUTES
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class LoggingConfig:
    """Centralized logging configuration."""

    def __init__(self,
                 log_level: str = "INFO",
                 service_name: str = SERVICE_NAME,
                 log_dir: Optional[str] = None,
                 max_file_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5,
                 enable_console: bool = True,
                 enable_file: bool = False):
        """
        Initialize logging configuration.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            service_name: Service name for log entries
            log_dir: Directory for log files (defaults to logs/ in project root)
            max_file_size: Maximum size per log file in bytes
            backup_count: Number of backup log files to keep
            enable_console: Whether to enable console logging
            enable_file: Whether to enable file logging
        """
        self.log_level = getattr(logging, log_level.upper())
        self.service_name = service_name
        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.enable_console = enable_console
        self.enable_file = enable_file

        # Set up log directory
        if log_dir:
            self.log_dir = Path(log_dir)
        else:
            # Default to logs/ directory in project root
            project_root = Path(__file__).parent.parent.parent.parent
            self.log_dir = project_root / "logs"

        # Ensure log directory exists
        if self.enable_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def setup_logging(self) -> None:
        """Configure logging for the application."""
        root_logger = logging.getLogger()
        # Clear any existing handlers
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        # Set root logger level
        root_logger.setLevel(self.log_level)

        # Create correlation ID filter and JSON formatter
        correlation_filter = CorrelationIDFilter()
        json_formatter = JSONFormatter(service_name=self.service_name)

        # Console handler
        if self.enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(self.log_level)
            console_handler.addFilter(correlation_filter)
            console_handler.setFormatter(json_formatter)
            root_logger.addHandler(console_handler)

        # File handlers with rotation
        if self.enable_file:
            root_logger.addHandler(self._rotating_handler(
                f"{self.service_name}.log", self.log_level, correlation_filter, json_formatter
            ))
            # ERROR and CRITICAL also go to their own file
            root_logger.addHandler(self._rotating_handler(
                f"{self.service_name}-errors.log", logging.ERROR, correlation_filter, json_formatter
            ))

        # Configure third-party loggers to reduce noise
        self._configure_third_party_loggers()

    def _rotating_handler(
        self,
        file_name: str,
        level: int,
        correlation_filter: logging.Filter,
        formatter: logging.Formatter
    ) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / file_name,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.addFilter(correlation_filter)
        handler.setFormatter(formatter)
        return handler

    def _configure_third_party_loggers(self) -> None:
        """Configure third-party library loggers to reduce noise."""
        # SQLAlchemy
        for name in ('sqlalchemy.engine', 'sqlalchemy.dialects', 'sqlalchemy.pool', 'sqlalchemy.orm'):
            logging.getLogger(name).setLevel(logging.WARNING)

        # FastAPI/Uvicorn
        logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
        logging.getLogger('fastapi').setLevel(logging.WARNING)

        # HTTP libraries
        logging.getLogger('httpx').setLevel(logging.WARNING)


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str) -> None:
    """Set correlation ID for the current context."""
    correlation_id_context.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    """Get current correlation ID."""
    return correlation_id_context.get()


def clear_correlation_id() -> None:
    """Clear correlation ID from current context."""
    correlation_id_context.set(None)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def setup_logging_from_env(log_level: Optional[str] = None) -> LoggingConfig:
    """Setup logging configuration from environment variables."""
    config = LoggingConfig(
        log_level=log_level or os.getenv('LOG_LEVEL', 'INFO'),
        service_name=os.getenv('SERVICE_NAME', SERVICE_NAME),
        log_dir=os.getenv('LOG_DIR'),
        max_file_size=int(os.getenv('LOG_MAX_FILE_SIZE', '10485760')),  # 10MB
        backup_count=int(os.getenv('LOG_BACKUP_COUNT', '5')),
        enable_console=os.getenv('LOG_ENABLE_CONSOLE', 'true').lower() == 'true',
        enable_file=os.getenv('LOG_ENABLE_FILE', 'false').lower() == 'true'
    )

    config.setup_logging()
    return config


# Convenience functions for common logging patterns
def log_with_extra(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """Log a message with extra fields."""
    logger.log(level, message, extra=extra)


def log_database_operation(logger: logging.Logger, operation: str, table: str, **extra: Any) -> None:
    """Log a database operation."""
    log_with_extra(
        logger,
        logging.DEBUG,
        f"Database {operation}: {table}",
        db_operation=operation,
        db_table=table,
        **extra
    )


def log_business_rule_violation(logger: logging.Logger, rule: str, details: str, **extra: Any) -> None:
    """Log a business rule violation."""
    log_with_extra(
        logger,
        logging.WARNING,
        f"Business rule violation: {rule} - {details}",
        business_rule=rule,
        violation_details=details,
        **extra
    )


def log_booking_transition(
    logger: logging.Logger,
    booking_id: Any,
    from_status: Optional[str],
    to_status: str,
    actor_id: Any,
    **extra: Any
) -> None:
    """Log an accepted booking status change."""
    log_with_extra(
        logger,
        logging.INFO,
        f"Booking {booking_id} moved {from_status or 'new'} -> {to_status}",
        booking_id=str(booking_id),
        from_status=from_status,
        to_status=to_status,
        actor_id=str(actor_id),
        **extra
    )


def log_notification_attempt(
    logger: logging.Logger,
    booking_id: Any,
    audience: str,
    event_type: str,
    delivered: bool,
    **extra: Any
) -> None:
    """Log the outcome of a single notification delivery."""
    level = logging.INFO if delivered else logging.WARNING
    outcome = "delivered" if delivered else "not delivered"
    log_with_extra(
        logger,
        level,
        f"Notification {event_type} to {audience} {outcome}",
        booking_id=str(booking_id),
        audience=audience,
        event_type=event_type,
        delivered=delivered,
        **extra
    )
