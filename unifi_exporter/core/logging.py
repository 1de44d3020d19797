"""Logging configuration for unifi-exporter.

WHAT THE LOGS ARE FOR
----------------------
The /metrics response body is terse: a failed scrape says
"scrape failed: upstream_unavailable" and nothing more, because the
consumer is Prometheus and it only cares about the status code.

The logs carry everything else:
  - which controller call failed and why (timeout vs. TLS vs. HTTP 500)
  - which device or client record was skipped during decoding
  - how long each scrape took and what it returned

So the distinction between "no data" (controller unreachable) and "bad
data" (controller answered with something we can't decode) lives here,
not in the HTTP response.

TWO OUTPUT FORMATS
-------------------
Both formatters read the same context fields off the LogRecord.  The
request middleware sets request_id/method/path/status_code/duration_ms;
the scrape pipeline passes site, device_id, client_id, endpoint,
error_kind and record_type through `extra=`.

  plain (default): one line per record, context appended as key=value

    2024-05-01T12:00:00.123+0000 WARNING  unifi_exporter.services.decoder  Skipping device #3 ...  site=default record_type=device  [decoder.py:171]

  LOG_JSON=true: one JSON object per line, context as top-level keys

    {"level": "WARNING", "site": "default", "record_type": "device", ...}
"""

from __future__ import annotations

import json
import logging
import sys

_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

_CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "site",
    "device_id",
    "client_id",
    "endpoint",
    "error_kind",
    "record_type",
)

_NOISY_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpcore", "httpx")


def _context(record: logging.LogRecord) -> dict[str, object]:
    fields: dict[str, object] = {}
    for key in _CONTEXT_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            fields[key] = value
    return fields


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for container stdout.

    WARNING and above also carry [filename:lineno] so a skipped record
    can be traced to the line that dropped it.
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(name)s  %(message)s", _DATEFMT)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = super().formatTime(record, datefmt)
        # strftime has no milliseconds; splice them in ahead of the +hhmm offset
        return "%s.%03d%s" % (stamp[:-5], record.msecs, stamp[-5:])

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        pairs = [f"{k}={v}" for k, v in _context(record).items() if v != "-"]
        if pairs:
            line += "  " + " ".join(pairs)
        if record.levelno >= logging.WARNING:
            line += f"  [{record.filename}:{record.lineno}]"
        return line


class _JsonFormatter(logging.Formatter):
    """JSON Lines output for Loki, ELK, CloudWatch and friends."""

    def __init__(self) -> None:
        super().__init__(datefmt=_DATEFMT)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Send every log record to stdout through a single root handler.

    Args:
        level_name: debug/info/warning/error; anything else means info
        json_format: LOG_JSON; one JSON object per line instead of plain text
    """
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    # One scrape is a dozen controller calls and httpx logs each at INFO.
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
