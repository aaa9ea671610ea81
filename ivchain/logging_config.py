"""
Logging configuration for IVChain.

Provides structured JSON logging and an audit logger for submissions,
signer changes and chain verification.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Logging here is a side channel: every error is still returned to the
    caller as a typed result.
    """

    def __init__(self, name: str = "ivchain.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def submission_received(self, identity: str, record_hash: str) -> None:
        self._log(
            logging.INFO,
            "SUBMISSION_RECEIVED",
            identity=identity,
            record_hash=record_hash,
            message=f"Submission received from {identity}"
        )

    def submission_accepted(self, tx_id: str, height: int, block_hash: str) -> None:
        self._log(
            logging.INFO,
            "SUBMISSION_ACCEPTED",
            tx_id=tx_id,
            height=height,
            block_hash=block_hash,
            message=f"Record stored at height {height}"
        )

    def submission_rejected(self, code: str, reason: str, record_hash: Optional[str] = None) -> None:
        self._log(
            logging.WARNING,
            "SUBMISSION_REJECTED",
            code=code,
            reason=reason,
            record_hash=record_hash,
            message=f"Submission rejected: {code}"
        )

    def oracle_signer_updated(self, old_signer: str, new_signer: str) -> None:
        self._log(
            logging.WARNING,
            "ORACLE_SIGNER_UPDATED",
            old_signer=old_signer,
            new_signer=new_signer,
            message="Oracle signer updated"
        )

    def oracle_signer_update_denied(self, new_signer: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "ORACLE_SIGNER_UPDATE_DENIED",
            new_signer=new_signer,
            reason=reason,
            message="Oracle signer update denied"
        )

    def chain_verified(self, height: int, invalid_count: int) -> None:
        level = logging.INFO if invalid_count == 0 else logging.ERROR
        self._log(
            level,
            "CHAIN_VERIFIED",
            height=height,
            invalid_count=invalid_count,
            message=f"Chain verified: {invalid_count} invalid of {height}"
        )

    def integrity_violation(
        self,
        height: int,
        issue: str,
        tx_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Corruption or a bypassed admission path. Always CRITICAL."""
        self._log(
            logging.CRITICAL,
            "INTEGRITY_VIOLATION",
            height=height,
            issue=issue,
            tx_id=tx_id,
            details=details or {},
            message=f"Integrity violation at height {height}: {issue}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Returns:
        The request ID that was set (generated if None)
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
