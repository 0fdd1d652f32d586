"""
Custom exceptions for PERMIT_CACHE.

All errors derive from PermitCacheError, which stays a RuntimeError so
callers that only catch RuntimeError keep working.
"""

from typing import Any, Dict, Optional


class PermitCacheError(RuntimeError):
    """
    Base exception for permission cache errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (backend_url,
                 status_code, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigurationError(PermitCacheError):
    """
    Raised when session configuration is invalid or missing.

    Raised at construction time when the logged-in user or the backend
    URL is missing, or when a config value cannot be parsed.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class ResourceIdentityError(PermitCacheError):
    """
    Raised when a resource identity cannot be normalized.

    Typed (ReBAC) resources need a non-empty ``type`` and ``key``; anything
    that is neither a string nor a typed resource is rejected too.
    """

    def __init__(
        self,
        message: str,
        resource: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if resource is not None:
            context["resource"] = repr(resource)
        super().__init__(message, context=context)
        self.resource = resource


class InvalidRequestError(PermitCacheError):
    """
    Raised when a permission request cannot be built.

    Covers request mappings missing ``action`` or ``resource``, values that
    are neither a PermissionRequest nor a mapping, and attribute maps with
    non-string keys.

    Attributes:
        message: Error message
        field: Request field at fault (if available)
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if field:
            context["field"] = field
        super().__init__(message, context=context)
        self.field = field


class TransportError(PermitCacheError):
    """
    Raised when the decision backend cannot be reached or answers badly.

    Single-check fetches swallow this and fall back to the default verdict;
    bulk fetches let it propagate.

    Attributes:
        message: Error message
        url: Backend URL that was called (if available)
        status_code: HTTP status code of the failed response (if any)
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if url:
            context["url"] = url
        if status_code is not None:
            context["status_code"] = status_code
        super().__init__(message, context=context)
        self.url = url
        self.status_code = status_code


class DecisionDenied(PermitCacheError):
    """
    Raised by the HTTP fetcher when the backend answers 403.

    This is an explicit denial, not a failure: single-check fetches turn it
    into a ``False`` verdict.
    """

    def __init__(
        self,
        message: str = "Permission explicitly denied by backend",
        url: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if url:
            context["url"] = url
        super().__init__(message, context=context)
        self.url = url
