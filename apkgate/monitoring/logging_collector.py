import logging
from contextvars import ContextVar, Token
from typing import Optional
from datetime import datetime

from .logs_storage import RunLogsStorage


# Run owning the current task, inherited by tasks it spawns
current_run_id: ContextVar[Optional[str]] = ContextVar("apkgate_run_id", default=None)


class RunLogsHandler(logging.Handler):
    """Logging handler that forwards records to RunLogsStorage for a specific run."""

    def __init__(self, logs_storage: RunLogsStorage, run_id: str):
        super().__init__()
        self.logs_storage = logs_storage
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        # Handlers sit on a shared logger, so concurrent runs see each other's records
        if current_run_id.get() != self.run_id:
            return False
        return super().filter(record)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record) if self.formatter else record.getMessage()
            self.logs_storage.append_log(
                run_id=self.run_id,
                timestamp=datetime.fromtimestamp(record.created),
                level=record.levelname,
                message=message,
                logger_name=record.name,
            )
        except Exception:
            self.handleError(record)


class LoggingCollector:
    """Manages lifecycle of run-specific logging handler."""

    def __init__(self, logs_storage: RunLogsStorage, logger_name: str = "apkgate"):
        self.logs_storage = logs_storage
        self.logger_name = logger_name
        self._handler: Optional[RunLogsHandler] = None
        self._token: Optional[Token] = None

    def start_run(self, run_id: str, level: int = logging.DEBUG) -> None:
        self.stop_run()
        handler = RunLogsHandler(self.logs_storage, run_id)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        self._token = current_run_id.set(run_id)
        logging.getLogger(self.logger_name).addHandler(handler)
        self._handler = handler

    def stop_run(self) -> None:
        if self._handler is not None:
            logging.getLogger(self.logger_name).removeHandler(self._handler)
            self._handler = None
        if self._token is not None:
            current_run_id.reset(self._token)
            self._token = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_run()
        return False
