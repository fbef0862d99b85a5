"""JSON log formatter used by the rotating file handler."""
import logging
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

EXTRA_FIELDS = ("method", "path", "status_code", "duration_ms", "user_id", "resource", "action")


class JSONFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record, with request and permission extras kept."""

    def add_fields(self, log_record, record: logging.LogRecord, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        for name in EXTRA_FIELDS:
            if hasattr(record, name):
                log_record[name] = getattr(record, name)
