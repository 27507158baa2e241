"""
Logging configuration for rootpolicy.

Trust decisions are logged as single-line JSON events. Key material never
appears in a log line: events carry key ids, namespaces and verdicts only.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO, Any, Dict, Iterable, List, Optional

from .util import format_timestamp

# Set per HTTP request by the API middleware; empty for CLI runs
request_id_var: ContextVar[str] = ContextVar("rootpolicy_request_id", default="")

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": format_timestamp(datetime.fromtimestamp(record.created, timezone.utc)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id

        entry.update(getattr(record, "extra_fields", {}))

        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class AuditLogger:
    """
    Records every verdict and every rejected document.

    The events are enough to reconstruct, after the fact, which policy a
    trust bootstrap accepted and which signers it relied on.
    """

    def __init__(self, name: str = "rootpolicy.audit"):
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, event: str, message: str, **fields) -> None:
        fields["event"] = event
        self._logger.log(level, message, extra={"extra_fields": fields})

    def policy_evaluated(
        self,
        namespace: Optional[str],
        verdict: str,
        threshold: Optional[int],
        valid_keyids: Iterable[str],
        version: Optional[int] = None,
        reason: Optional[str] = None
    ) -> None:
        """A document was evaluated to a verdict."""
        self._emit(
            logging.INFO if verdict == "TRUSTED" else logging.WARNING,
            "POLICY_EVALUATED",
            f"{namespace or '<unknown>'} v{version}: {verdict}",
            namespace=namespace,
            version=version,
            verdict=verdict,
            threshold=threshold,
            valid_keyids=sorted(valid_keyids),
            reason=reason,
        )

    def policy_rejected(self, error_code: str, reason: str, source: Optional[str] = None) -> None:
        """A document could not be evaluated at all."""
        self._emit(
            logging.WARNING,
            "POLICY_REJECTED",
            f"{source or 'document'} rejected: {error_code}",
            error_code=error_code,
            reason=reason,
            source=source,
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[IO[str]] = None
) -> None:
    """
    Replace the root logger's handlers.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...)
        json_format: One JSON object per line instead of plain text
        log_file: Also append to this file
        stream: Console stream (default: stderr, leaving stdout to the CLI)
    """
    formatter = StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level.upper(), handlers=handlers, force=True)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, generating one if needed."""
    request_id = request_id or uuid.uuid4().hex
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    return request_id_var.get()


audit_log = AuditLogger()
