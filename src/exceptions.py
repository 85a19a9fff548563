"""
Standardized exception hierarchy for the progression engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class ProgressionError(Exception):
    """
    Base exception for all progression engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - Stable error code for API responses
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise ProgressionError(
            message="Failed to save quest",
            user_id="user-123",
            operation="complete_quest",
            context={"quest_id": "abc-123"}
        )
    """

    code: str = "INTERNAL_ERROR"
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_code": self.code,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,  # Avoid conflict with logging's 'context'
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(ProgressionError):
    """
    Raised when caller input fails validation

    Example:
        raise ValidationError(
            message="Progress value must be a number",
            field="value",
            value="abc",
            user_id="user-123"
        )
    """

    code = "VALIDATION_ERROR"
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


# ==========================================
# Quest Lifecycle Errors
# ==========================================

class QuestError(ProgressionError):
    """Base class for rejected quest operations"""

    log_level = logging.WARNING


class InvalidStateError(QuestError):
    """Operation is not valid for the quest's current status"""

    code = "INVALID_STATE"

    def __init__(
        self,
        message: str,
        quest_id: Optional[str] = None,
        status: Optional[str] = None,
        **kwargs
    ):
        self.quest_id = quest_id
        self.status = status
        super().__init__(
            message=message,
            user_message=message,
            context={"quest_id": quest_id, "status": status},
            **kwargs
        )


class QuestNotEligibleError(QuestError):
    """Partial completion threshold not met"""

    code = "QUEST_NOT_ELIGIBLE"

    def __init__(
        self,
        message: str,
        quest_id: Optional[str] = None,
        completion_percent: Optional[float] = None,
        required_percent: Optional[float] = None,
        **kwargs
    ):
        self.quest_id = quest_id
        self.completion_percent = completion_percent
        self.required_percent = required_percent
        super().__init__(
            message=message,
            user_message=message,
            context={
                "quest_id": quest_id,
                "completion_percent": completion_percent,
                "required_percent": required_percent,
            },
            **kwargs
        )


class CannotRemoveCoreQuestError(QuestError):
    """Core quests are mandatory and cannot be removed"""

    code = "CANNOT_REMOVE_CORE_QUEST"

    def __init__(self, message: str = "Core quests cannot be removed", quest_id: Optional[str] = None, **kwargs):
        self.quest_id = quest_id
        super().__init__(
            message=message,
            user_message="Core quests cannot be removed.",
            context={"quest_id": quest_id},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(ProgressionError):
    """
    Base class for persistence-related errors
    """
    pass


class DatabaseUnavailableError(DatabaseError):
    """Persistence collaborator failed; surfaced to the caller, never retried"""

    code = "DATABASE_UNAVAILABLE"

    def __init__(self, message: str = "Database unavailable", **kwargs):
        super().__init__(
            message=message,
            user_message="We're having trouble reaching the database. Please try again in a moment.",
            **kwargs
        )


class RecordNotFoundError(DatabaseError):
    """Requested record does not exist"""

    code = "NOT_FOUND"
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            user_message=f"{record_type or 'Record'} not found.",
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class TemplateNotFoundError(RecordNotFoundError):
    """Quest template missing from the catalog"""

    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str, **kwargs):
        super().__init__(
            message=f"Quest template '{template_id}' not found",
            record_type="Quest template",
            record_id=template_id,
            **kwargs
        )


class QuestNotFoundError(RecordNotFoundError):
    """Quest instance missing or owned by another player"""

    code = "QUEST_NOT_FOUND"

    def __init__(self, quest_id: str, **kwargs):
        super().__init__(
            message=f"Quest '{quest_id}' not found",
            record_type="Quest",
            record_id=quest_id,
            **kwargs
        )


class PlayerNotFoundError(RecordNotFoundError):
    """Player missing from the store"""

    code = "PLAYER_NOT_FOUND"

    def __init__(self, user_id: str, **kwargs):
        super().__init__(
            message=f"Player '{user_id}' not found",
            record_type="Player",
            record_id=user_id,
            user_id=user_id,
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(ProgressionError):
    """System configuration is invalid or missing"""

    code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ProgressionError:
    """
    Wrap collaborator exceptions into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate ProgressionError subclass

    Example:
        try:
            await store.save_player(player)
        except OSError as e:
            raise wrap_external_exception(
                e,
                operation="complete_quest",
                user_id="user-123"
            )
    """
    if isinstance(error, ProgressionError):
        return error

    # Connection refused, timeouts and socket failures all derive from OSError
    if isinstance(error, OSError):
        return DatabaseUnavailableError(
            message=f"Database unavailable during {operation}: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    return ProgressionError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
