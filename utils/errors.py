"""
ClipScript error taxonomy.

Every failure raised inside the generation pipeline is a GenerationError
subclass so that the background task can persist one message per request
and route handlers can map errors to HTTP status codes in one place.
"""
from typing import Any, Dict, Optional


GENERIC_USER_MESSAGE = "Something went wrong while generating your video. Please try again."


class GenerationError(Exception):
    """Base error carrying a machine code, context and a user-facing message."""

    code = "VIDEO_GENERATION_FAILED"
    retryable = False
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable
        self.context = context or {}
        self.user_message = user_message or GENERIC_USER_MESSAGE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.user_message,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class RequestValidationError(GenerationError):
    """Payload rejected by the rules engine. Returned to the caller, never logged as a fault."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, errors=None, **kwargs):
        super().__init__(message, user_message=message, **kwargs)
        self.errors = errors or []


class StageTimeoutError(GenerationError):
    code = "OPERATION_TIMEOUT"
    retryable = True
    status_code = 504

    def __init__(self, stage: str, timeout_sec: float, **kwargs):
        super().__init__(
            f"{stage} timed out after {timeout_sec:g}s",
            context={"stage": stage, "timeout_sec": timeout_sec},
            user_message="Operation timed out. Please try again.",
            **kwargs,
        )
        self.stage = stage
        self.timeout_sec = timeout_sec


class RepairBudgetExhaustedError(GenerationError):
    """Scene durations still violated after the last repair attempt."""

    code = "SCENE_DURATION_INVALID"

    def __init__(self, attempts: int, violation_count: int):
        super().__init__(
            f"Scene duration validation failed after {attempts} attempts. "
            f"{violation_count} scenes exceed video duration.",
            context={"attempts": attempts, "violation_count": violation_count},
        )
        self.attempts = attempts
        self.violation_count = violation_count


class ContractError(GenerationError):
    """Configuration fault: missing prompt template or LLM output that breaks the schema."""

    code = "CONTRACT_VIOLATION"


class UrlRepairError(GenerationError):
    code = "INVALID_VIDEO_REFERENCE"


class TemplateValidationError(GenerationError):
    code = "INVALID_TEMPLATE"


class ExternalServiceError(GenerationError):
    """Database, LLM or renderer failure."""

    code = "EXTERNAL_SERVICE_ERROR"
    retryable = True
    status_code = 502


class DatabaseError(ExternalServiceError):
    code = "DATABASE_ERROR"
    status_code = 500


class NotFoundError(GenerationError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message: str, **kwargs):
        super().__init__(message, user_message=message, **kwargs)


class CallbackRejectedError(GenerationError):
    """Render callback that cannot be applied (bad metadata, unknown request, wrong user)."""

    def __init__(self, message: str, code: str, status_code: int):
        super().__init__(message, code=code, user_message=message)
        self.status_code = status_code
