import json
import logging
import os
import datetime
from typing import Dict, Any, List, Optional

from utils.logger import get_logger

logger = get_logger("error_manager")


class ErrorManager:
    """
    Centralized manager for logging and retrieving pipeline errors.
    """

    LOG_FILE = os.getenv("CLIPSCRIPT_ERROR_LOG", "outputs/api_errors.log")
    MAX_ENTRIES = 100

    @classmethod
    def log_error(
        cls,
        service: str,
        error_message: str,
        details: Any = None,
        severity: str = "error",
        request_id: Optional[str] = None,
    ):
        """
        Log an error to the rolling JSON error file.

        Args:
            service: Name of the service/stage (e.g., "ScriptAgent", "Creatomate")
            error_message: Brief error description
            details: Additional context (error code, stage, traceback)
            severity: Error severity ("warning", "error", "critical")
            request_id: Generation request the error belongs to, if any
        """
        entry = {
            "timestamp": datetime.datetime.now().isoformat(),
            "service": service,
            "message": error_message,
            "details": details if isinstance(details, (dict, list)) else (str(details) if details else None),
            "severity": severity,
            "request_id": request_id,
        }

        log_dir = os.path.dirname(cls.LOG_FILE)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        try:
            logs = cls._read_logs()
            logs.append(entry)
            if len(logs) > cls.MAX_ENTRIES:
                logs = logs[-cls.MAX_ENTRIES:]

            with open(cls.LOG_FILE, "w", encoding="utf-8") as f:
                json.dump(logs, f, indent=2, ensure_ascii=False, default=str)

            logger.log(
                logging.WARNING if severity == "warning" else logging.ERROR,
                f"[{severity.upper()}] {service}: {error_message}",
            )
        except OSError as e:
            logger.critical(f"Failed to write to error log: {e}")
            logger.error(f"Original Error: [{service}] {error_message}")

    @classmethod
    def log_exception(cls, service: str, exc: Exception, request_id: Optional[str] = None):
        """Log an exception, keeping the code/context of GenerationError subclasses."""
        details = {"type": type(exc).__name__}
        code = getattr(exc, "code", None)
        if code:
            details["code"] = code
            details["retryable"] = getattr(exc, "retryable", False)
            details["context"] = getattr(exc, "context", {})
        cls.log_error(service, str(exc), details=details, request_id=request_id)

    @classmethod
    def _read_logs(cls) -> List[Dict]:
        if not os.path.exists(cls.LOG_FILE):
            return []
        try:
            with open(cls.LOG_FILE, "r", encoding="utf-8") as f:
                content = f.read()
            return json.loads(content) if content.strip() else []
        except json.JSONDecodeError:
            return []  # Reset if corrupted

    @classmethod
    def get_recent_errors(cls, limit: int = 20) -> List[Dict]:
        """Get recent error logs."""
        logs = cls._read_logs()
        return sorted(logs, key=lambda x: x["timestamp"], reverse=True)[:limit]
