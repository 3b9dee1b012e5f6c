"""
Structured Error Handling for the Organization Hierarchy Core
Provides error hierarchy with categorization, error codes, and structured context.
"""

from typing import Dict, Any, Optional
from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification and handling."""
    VALIDATION = "VALIDATION"  # Rejected reparent requests (user-correctable)
    NOT_FOUND = "NOT_FOUND"  # Unknown organization ids
    DATA_INTEGRITY = "DATA_INTEGRITY"  # Malformed upstream hierarchy data
    EXTERNAL = "EXTERNAL"  # Organization service / persistence errors


class ErrorCode(str, Enum):
    """Standardized error codes for monitoring and for UI message lookup."""
    # Validation
    NOT_FOUND = "NOT_FOUND"
    SELF_PARENT = "SELF_PARENT"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    INACTIVE_PARENT = "INACTIVE_PARENT"
    MAX_DEPTH_EXCEEDED = "MAX_DEPTH_EXCEEDED"

    # Malformed snapshot data
    DATA_INTEGRITY = "DATA_INTEGRITY"
    HIERARCHY_INCONSISTENT = "HIERARCHY_INCONSISTENT"

    # External collaborator
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


class HierarchyError(Exception):
    """
    Base exception for all organization hierarchy errors.

    Provides structured error information for logging and for rendering
    specific messages in reparent dialogs.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory,
        error_code: ErrorCode,
        http_status: int = 500,
        context: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
        original_error: Optional[Exception] = None
    ):
        """
        Initialize structured exception.

        Args:
            message: Human-readable error message
            category: Error category for classification
            error_code: Standardized error code
            http_status: HTTP status code an API layer should map this to
            context: Additional context (org_id, parent ids, ...)
            retryable: Whether repeating the call may succeed
            original_error: Original exception if wrapped
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.error_code = error_code
        self.http_status = http_status
        self.context = context or {}
        self.retryable = retryable
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {
            "error": self.error_code.value,
            "message": self.message,
            "category": self.category.value,
            "http_status": self.http_status
        }

        if self.context:
            result["context"] = self.context

        if self.original_error:
            result["original_error"] = str(self.original_error)

        return result

    def is_retryable(self) -> bool:
        return self.retryable


# ============================================
# Lookup Errors
# ============================================

class NotFoundError(HierarchyError):
    """Organization id is not present in the snapshot."""

    def __init__(self, org_id: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Organization '{org_id}' not found",
            category=ErrorCategory.NOT_FOUND,
            error_code=ErrorCode.NOT_FOUND,
            http_status=404,
            context={"org_id": org_id}
        )
        self.org_id = org_id


# ============================================
# Validation Errors (user-correctable reparent requests)
# ============================================

class ReparentValidationError(HierarchyError):
    """A proposed parent change is structurally illegal."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.VALIDATION,
            error_code=error_code,
            http_status=400,
            context=context
        )


class SelfParentError(ReparentValidationError):
    """Organization cannot be its own parent."""

    def __init__(self, org_id: str):
        super().__init__(
            message="Organization cannot be its own parent",
            error_code=ErrorCode.SELF_PARENT,
            context={"org_id": org_id}
        )


class InactiveParentError(ReparentValidationError):
    """Inactive organizations cannot receive children."""

    def __init__(self, org_id: str, new_parent_id: str):
        super().__init__(
            message=f"Parent organization '{new_parent_id}' is inactive",
            error_code=ErrorCode.INACTIVE_PARENT,
            context={"org_id": org_id, "new_parent_id": new_parent_id}
        )


class MaxDepthExceededError(ReparentValidationError):
    """Move would push part of the subtree below the configured depth limit."""

    def __init__(self, org_id: str, new_parent_id: str, max_depth: int):
        super().__init__(
            message=f"Cannot set parent: hierarchy would exceed maximum depth {max_depth}",
            error_code=ErrorCode.MAX_DEPTH_EXCEEDED,
            context={"org_id": org_id, "new_parent_id": new_parent_id, "max_depth": max_depth}
        )


# ============================================
# Data Integrity Errors (malformed upstream data)
# ============================================

class CycleDetectedError(HierarchyError):
    """
    A parent chain loops back on itself.

    Raised by strict traversals when the snapshot already violates the
    forest invariant, and used as the validation outcome when a proposed
    parent is a descendant of the organization being moved.
    """

    def __init__(self, org_id: str, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or f"Cycle detected in hierarchy at organization '{org_id}'",
            category=ErrorCategory.DATA_INTEGRITY,
            error_code=ErrorCode.CYCLE_DETECTED,
            http_status=409,
            context={"org_id": org_id, **(context or {})}
        )
        self.org_id = org_id


class DataIntegrityError(HierarchyError):
    """Snapshot references an organization it does not contain, or repeats an id."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            category=ErrorCategory.DATA_INTEGRITY,
            error_code=ErrorCode.DATA_INTEGRITY,
            http_status=500,
            context=context
        )


class HierarchyInconsistentError(HierarchyError):
    """
    Generic wrapper surfaced to API/UI layers for malformed hierarchy data.

    The detailed cause stays in ``original_error`` and the logs; the message
    is safe to show to end users.
    """

    def __init__(self, original_error: HierarchyError):
        super().__init__(
            message="Hierarchy data inconsistent",
            category=ErrorCategory.DATA_INTEGRITY,
            error_code=ErrorCode.HIERARCHY_INCONSISTENT,
            http_status=500,
            context=dict(original_error.context),
            original_error=original_error
        )


# ============================================
# External Errors (organization service)
# ============================================

class ProviderError(HierarchyError):
    """Organization service call failed."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        http_status: int = 502,
        context: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            category=ErrorCategory.EXTERNAL,
            error_code=error_code,
            http_status=http_status,
            context=context,
            retryable=retryable,
            original_error=original_error
        )


class PersistenceError(ProviderError):
    """Parent change could not be persisted; the caller's snapshot is stale."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        retryable: bool = False,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.PERSISTENCE_FAILED,
            context=context,
            retryable=retryable,
            original_error=original_error
        )
