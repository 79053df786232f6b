"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so every log line carries an
event name followed by structured fields. Two output formats are supported:
human-readable key=value pairs (default) and one JSON object per line for log
aggregators.

Values containing spaces, equals signs, or quotes are escaped and wrapped in
double quotes. Long values (article bodies, error payloads returned by
Elasticsearch or Drupal) are truncated to a configurable maximum length.

The ``StructuredFormatter`` is a stdlib ``logging.Formatter`` that reads the
``structured_kv`` extra field attached by [Logger][newsbridge.core.logger.Logger]
and appends it as key=value pairs. ``JsonFormatter`` renders the same record as
one JSON object. The CLI installs one of the two on the root handler so that
plain ``logging.getLogger()`` calls share the same layout.

Examples:
    ```python
    from newsbridge.core.logger import Logger

    logger = Logger("connector")
    logger.info("city_completed", city="sudbury", posted=3, skipped=1)
    # Output: info connector city_completed city=sudbury posted=3 skipped=1

    city_logger = logger.bind(city="sudbury")
    city_logger.warning("mark_seen_failed", article_id="abc")
    # Output: warning connector mark_seen_failed city=sudbury article_id=abc
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ' key1=value1 key2="value with spaces"'.
        Returns empty string if kwargs is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = str(v)
        if max_value_length and len(s) > max_value_length:
            s = s[:max_value_length] + f"...<truncated {len(s) - max_value_length} chars>"
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Formats all log records as ``level name message key=value ...``.

    Records without ``structured_kv`` (plain ``logging.getLogger()`` calls)
    are emitted with the same prefix and no trailing fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class JsonFormatter(logging.Formatter):
    """Formats all log records as one JSON object per line.

    The keys match ``Logger(json_output=True)``: ``timestamp``, ``level``,
    ``service`` and ``message``, followed by the record's ``structured_kv``
    fields. A traceback, if any, goes under ``exception``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.UTC
            ).isoformat(),
            "level": record.levelname.lower(),
            "service": record.name,
            "message": record.getMessage(),
            **getattr(record, "structured_kv", {}),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Mirrors the standard logging API with an added ``**kwargs`` parameter.
    Fields bound with [bind()][newsbridge.core.logger.Logger.bind] are
    prepended to every record emitted by the returned logger, which is how
    the connector tags all lines of one city's processing pass.

    Examples:
        ```python
        logger = Logger("publisher")
        logger.info("node_created", node_id="5b1c", duration=0.41)
        # Output: info publisher node_created node_id=5b1c duration=0.41
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, typically the service or component name.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum character length for individual values
                before truncation. Defaults to 1000.
            context: Fields attached to every record from this logger.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        """Name of the underlying stdlib logger."""
        return self._logger.name

    def bind(self, **fields: Any) -> Logger:
        """Return a child logger that carries ``fields`` on every record."""
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **fields},
        )

    def is_enabled_for(self, level: int) -> bool:
        """Whether a record at ``level`` would be emitted."""
        return self._logger.isEnabledFor(level)

    def _merge(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if not self._context:
            return kwargs
        return {**self._context, **kwargs}

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        """Format message and kwargs as a JSON string.

        Includes ``timestamp`` (ISO 8601), ``level`` and ``service`` (logger
        name) alongside the structured fields.
        """
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "service": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Build the ``extra`` dict with values pre-truncated."""
        if not kwargs:
            return {}
        truncated: dict[str, Any] = {}
        for k, v in kwargs.items():
            s = str(v)
            if self._max_value_length and len(s) > self._max_value_length:
                truncated[k] = (
                    s[: self._max_value_length]
                    + f"...<truncated {len(s) - self._max_value_length} chars>"
                )
            else:
                truncated[k] = v
        return {"structured_kv": truncated}

    def _log(self, level: int, level_name: str, msg: str, kwargs: dict[str, Any]) -> None:
        fields = self._merge(kwargs)
        if self._json_output:
            self._logger.log(level, self._format_json(msg, level_name, fields))
        else:
            self._logger.log(level, msg, extra=self._make_extra(fields))

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, "debug", msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, "info", msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, "warning", msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, "error", msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._log(logging.CRITICAL, "critical", msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with the active exception's traceback."""
        fields = self._merge(kwargs)
        if self._json_output:
            self._logger.exception(self._format_json(msg, "error", fields))
        else:
            self._logger.exception(msg, extra=self._make_extra(fields))
