import logging
import json
import contextvars
from contextlib import contextmanager
from typing import Optional

_trace_id_ctx = contextvars.ContextVar("trace_id", default=None)
_target_id_ctx = contextvars.ContextVar("target_id", default=None)


class RequestContextFilter(logging.Filter):
    """Injects the active trace_id and target_id into every log record."""
    def filter(self, record):
        record.trace_id = _trace_id_ctx.get()
        record.target_id = _target_id_ctx.get()
        return True


@contextmanager
def request_context(trace_id: str, target_id: Optional[str] = None):
    """Binds a trace id (and optionally the target process id) to the current context."""
    trace_token = _trace_id_ctx.set(trace_id)
    target_token = _target_id_ctx.set(target_id)
    try:
        yield
    finally:
        _target_id_ctx.reset(target_token)
        _trace_id_ctx.reset(trace_token)


def current_trace_id() -> Optional[str]:
    return _trace_id_ctx.get()


class JsonFormatter(logging.Formatter):
    """Formatter that renders each LogRecord as a single JSON object."""

    _STANDARD_ATTRS = {
        "args", "asctime", "created", "exc_info", "exc_text", "filename",
        "funcName", "levelname", "levelno", "lineno", "module",
        "msecs", "message", "msg", "name", "pathname", "process",
        "processName", "relativeCreated", "stack_info", "thread", "threadName",
        "taskName", "trace_id", "target_id",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formats the log record as a JSON string.

        Args:
           record (logging.LogRecord): The log record to format.

        Returns:
            str: The JSON-formatted log string.
        """
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        for ctx_key in ("trace_id", "target_id"):
            value = getattr(record, ctx_key, None)
            if value:
                log_record[ctx_key] = value

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self._STANDARD_ATTRS and not key.startswith("_"):
                log_record[key] = value

        return json.dumps(log_record, default=str)


def configure_logging(level: str = "INFO", json_format: bool = False):
    """Configures the root logger.

    Args:
        level (str): The logging level (default: INFO).
        json_format (bool): Whether to use JSON formatting (default: False).
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.addFilter(RequestContextFilter())

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        formatter = logging.Formatter(
            "%(asctime)s - [%(trace_id)s|%(target_id)s] - %(name)s - %(levelname)s - %(message)s"
        )
        handler.setFormatter(formatter)

    root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Gets a logger namespaced under the nl2msg package.

    Args:
        name (str): The short component name (e.g. "discovery").

    Returns:
        logging.Logger: The logger instance.
    """
    return logging.getLogger(f"nl2msg.{name}")
