"""
Structured exceptions for the interpolation pipeline.

This module defines a hierarchy of exceptions with error codes
for consistent error handling across rules, strategies and workers.
"""

from typing import Any, Dict, Optional


class InterpolatorError(Exception):
    """
    Base exception for all interpolation errors.

    All custom exceptions in the pipeline inherit from this class,
    providing consistent error code and detail handling.
    """

    error_code: str = "INTERPOLATOR_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error details (entity, field, rule...)
        """
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logs and job records."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class ConfigurationError(InterpolatorError):
    """
    Configuration-related errors.

    Raised when an enabled field is missing a required key such as
    ``rule`` or ``base_field``, or when a config file is malformed.
    """

    error_code = "CONFIG_ERROR"


class RuleNotFoundError(InterpolatorError):
    """
    The configured rule id does not resolve in the registry.

    Not retried: the configuration has to be fixed.
    """

    error_code = "RULE_NOT_FOUND"

    def __init__(
        self,
        field_type: str,
        rule_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details.setdefault("field_type", field_type)
        if rule_id:
            details.setdefault("rule", rule_id)
        super().__init__(
            f"The rule could not be found: {field_type}",
            details=details,
        )
        self.field_type = field_type
        self.rule_id = rule_id


class RequestError(InterpolatorError):
    """
    The generation backend could not be reached or rejected the call.

    Transient by nature; a candidate for retry.
    """

    error_code = "REQUEST_ERROR"
    retryable = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details)
        self.status_code = status_code


class ResponseError(InterpolatorError):
    """
    The backend answered but the payload could not be used.
    """

    error_code = "RESPONSE_ERROR"


class StoreError(InterpolatorError):
    """
    Persisting accepted values failed (download, file write, term creation).

    The target field is left untouched when this is raised.
    """

    error_code = "STORE_ERROR"


class ConcurrentModificationError(InterpolatorError):
    """
    An entity save lost a revision compare-and-swap.
    """

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        expected_revision: int,
        actual_revision: int,
    ):
        super().__init__(
            f"Entity {entity_type}:{entity_id} changed since revision "
            f"{expected_revision} (now {actual_revision})",
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_revision": expected_revision,
                "actual_revision": actual_revision,
            },
        )
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision
