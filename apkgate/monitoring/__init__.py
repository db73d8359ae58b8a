from .logs_storage import RunLogsStorage
from .logging_collector import LoggingCollector, RunLogsHandler

__all__ = ['RunLogsStorage', 'LoggingCollector', 'RunLogsHandler']
