"""Custom filters for uvicorn access logging."""

import logging


class ExcludeMetricsFilter(logging.Filter):
    """
    Logging filter to exclude monitoring endpoint requests from access logs.

    Requests to health checks and Prometheus scrapes (``/metrics`` and
    ``/health`` by default) will not appear in uvicorn's access logs.
    """

    def __init__(self, excluded_paths: list[str] | None = None) -> None:
        super().__init__()
        if excluded_paths is None:
            from relay.settings import app_settings

            excluded_paths = app_settings.LOG_EXCLUDED_PATHS
        self.excluded_paths = list(excluded_paths)

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Determine if the log record should be logged.

        Args:
            record: The log record to evaluate.

        Returns:
            False if the request path is excluded, True otherwise.
        """
        message = record.getMessage()
        return not any(path in message for path in self.excluded_paths)
