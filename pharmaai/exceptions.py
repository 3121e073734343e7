"""
Centralized exception hierarchy for PharmaAI.

Provides specific exception types for different error scenarios so that
every page can render a user-facing (Turkish) message while the logs keep
the machine-readable error code.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

logger = logging.getLogger(__name__)


# =============================================================================
# Base Exception
# =============================================================================


class PharmaAIError(RuntimeError):
    """
    Base exception for all PharmaAI errors.

    Attributes:
        message: Human-readable error message (shown in the UI).
        detail: Additional error details (optional, logs only).
        error_code: Machine-readable error code.
        request_id: Unique identifier for the failing operation.
    """

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        error_code: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.error_code = error_code or self._default_error_code()
        self.request_id = request_id or str(uuid.uuid4())

    def _default_error_code(self) -> str:
        """Generate default error code from class name."""
        return f"pharmaai_{self.__class__.__name__.lower()}"

    def to_dict(self) -> dict[str, Any]:
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.detail:
            result["detail"] = self.detail
        if self.request_id:
            result["request_id"] = self.request_id
        return result

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message

    def log(self, level: int = logging.ERROR) -> None:
        """Log the exception with structured data."""
        logger.log(
            level,
            self.message,
            extra={
                "error_code": self.error_code,
                "detail": self.detail,
                "request_id": self.request_id,
                "exception_type": self.__class__.__name__,
            },
        )


# =============================================================================
# Input Validation Errors
# =============================================================================


class ValidationError(PharmaAIError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.field = field
        super().__init__(
            message,
            detail=detail,
            error_code="validation_error",
            request_id=request_id,
        )


class InventoryImportError(ValidationError):
    """Raised when an uploaded inventory file cannot be read."""

    def __init__(self, reason: str, *, filename: str | None = None) -> None:
        self.filename = filename
        super().__init__(
            "Envanter dosyası okunamadı.",
            field="inventory_file",
            detail=f"{filename}: {reason}" if filename else reason,
        )


class AudioFormatError(ValidationError):
    """Raised when a recording cannot be decoded into PCM samples."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            "Ses kaydı çözümlenemedi.",
            field="audio",
            detail=reason,
        )


# =============================================================================
# Authentication Errors (simulated user store)
# =============================================================================


class AuthError(PharmaAIError):
    """Base class for login/registration failures. The message is shown as is."""

    def __init__(self, message: str, *, username: str | None = None) -> None:
        self.username = username
        super().__init__(message, error_code="auth_error")


class AccountNotFoundError(AuthError):
    def __init__(self, username: str) -> None:
        super().__init__("Bu kullanıcı adı ile kayıtlı hesap bulunamadı.", username=username)


class InvalidPasswordError(AuthError):
    def __init__(self, username: str) -> None:
        super().__init__("Hatalı şifre girdiniz.", username=username)


class WeakPasswordError(AuthError):
    def __init__(self, min_length: int) -> None:
        self.min_length = min_length
        super().__init__(f"Şifre en az {min_length} karakter olmalıdır.")


class DuplicateUserError(AuthError):
    """Raised when the username/e-mail key is already taken."""

    def __init__(self, username: str, *, message: str = "Bu kullanıcı adı/e-posta zaten kullanımda.") -> None:
        super().__init__(message, username=username)


class PermissionDeniedError(AuthError):
    def __init__(self, username: str | None = None) -> None:
        super().__init__("Bu işlem için yetkiniz yok.", username=username)


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(PharmaAIError):
    """Raised when a requested record is not found."""

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        resource_id: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        detail = None
        if resource_type and resource_id:
            detail = f"{resource_type} with ID {resource_id!r} not found"
        super().__init__(
            message,
            detail=detail,
            error_code="not_found",
            request_id=request_id,
        )


class UserNotFoundError(NotFoundError):
    """Raised by profile updates for a username missing from the store."""

    def __init__(self, username: str) -> None:
        super().__init__("Kullanıcı bulunamadı", resource_type="User", resource_id=username)
        self.username = username


# =============================================================================
# External API Errors
# =============================================================================


class ExternalAPIError(PharmaAIError):
    """Base class for external API errors."""

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        detail_parts = []
        if service:
            detail_parts.append(f"Service: {service}")
        if status_code:
            detail_parts.append(f"Status: {status_code}")
        detail = "; ".join(detail_parts) if detail_parts else None
        super().__init__(
            message,
            detail=detail,
            error_code="external_api_error",
            request_id=request_id,
        )


class GeminiAPIError(ExternalAPIError):
    """Raised when a Gemini API call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_type: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.error_type = error_type
        super().__init__(
            message,
            service="gemini",
            status_code=status_code,
            request_id=request_id,
        )
        if error_type:
            self.detail = f"Type: {error_type}; {self.detail}"


class RateLimitError(ExternalAPIError):
    """Raised when the vendor reports quota exhaustion (HTTP 429)."""

    def __init__(
        self,
        service: str = "gemini",
        *,
        retry_after: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(
            "Rate limit exceeded",
            service=service,
            status_code=429,
            request_id=request_id,
        )
        self.error_code = "rate_limited"
        if retry_after:
            self.detail = f"Retry after {retry_after}s"


class AuthenticationError(ExternalAPIError):
    """Raised when the vendor rejects the API key."""

    def __init__(
        self,
        service: str,
        *,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message=f"Authentication failed for {service}",
            service=service,
            request_id=request_id,
        )
        self.error_code = "authentication_error"


class APITimeoutError(ExternalAPIError):
    """Raised when an API request times out."""

    def __init__(
        self,
        service: str,
        *,
        timeout_seconds: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message=f"Request to {service} timed out",
            service=service,
            request_id=request_id,
        )
        self.error_code = "api_timeout"
        if timeout_seconds:
            self.detail = f"Timeout after {timeout_seconds}s"


class APIConnectionError(ExternalAPIError):
    """Raised when an API connection (including a live session) fails."""

    def __init__(
        self,
        service: str,
        *,
        reason: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.reason = reason
        super().__init__(
            message=f"Connection to {service} failed",
            service=service,
            request_id=request_id,
        )
        self.error_code = "api_connection_error"
        self.detail = reason if reason else "Could not establish connection"


# =============================================================================
# Circuit Breaker Errors
# =============================================================================


class CircuitBreakerOpenError(PharmaAIError):
    """Raised when the circuit breaker rejects a call."""

    def __init__(
        self,
        service: str,
        *,
        retry_after_seconds: int | None = None,
        failure_count: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.retry_after_seconds = retry_after_seconds
        self.failure_count = failure_count
        detail_parts = [f"Service: {service}"]
        if retry_after_seconds:
            detail_parts.append(f"Retry after: {retry_after_seconds}s")
        if failure_count:
            detail_parts.append(f"Failures: {failure_count}")
        super().__init__(
            message=f"Circuit breaker open for {service}",
            detail="; ".join(detail_parts),
            error_code="circuit_breaker_open",
            request_id=request_id,
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(PharmaAIError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        *,
        setting_name: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.setting_name = setting_name
        detail = f"Missing or invalid setting: {setting_name}" if setting_name else None
        super().__init__(
            message,
            detail=detail,
            error_code="configuration_error",
            request_id=request_id,
        )


class MissingAPIKeyError(ConfigurationError):
    """Raised when no Gemini API key is present in the environment."""

    def __init__(
        self,
        service: str,
        *,
        env_var: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.service = service
        self.env_var = env_var
        super().__init__(
            message=f"Missing API key for {service}",
            setting_name=env_var or f"{service}_api_key",
            request_id=request_id,
        )
        detail = f"API key for {service} is required"
        if env_var:
            detail += f" (set {env_var} environment variable)"
        self.detail = detail


# =============================================================================
# Data Store Errors
# =============================================================================


class DataStoreError(PharmaAIError):
    """Raised when a key-value store operation fails."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        key: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.key = key
        detail_parts = []
        if operation:
            detail_parts.append(f"Operation: {operation}")
        if key:
            detail_parts.append(f"Key: {key}")
        detail = "; ".join(detail_parts) if detail_parts else None
        super().__init__(
            message,
            detail=detail,
            error_code="data_store_error",
            request_id=request_id,
        )


# =============================================================================
# UI message mapping
# =============================================================================

GENERIC_ERROR_MESSAGE = "Bir hata oluştu."

_SERVICE_MESSAGES: dict[type[PharmaAIError], str] = {
    MissingAPIKeyError: "Gemini API anahtarı bulunamadı. GEMINI_API_KEY ortam değişkenini ayarlayın.",
    AuthenticationError: "Gemini API anahtarı geçersiz.",
    RateLimitError: "Çok fazla istek gönderildi. Lütfen biraz bekleyip tekrar deneyin.",
    APITimeoutError: "İstek zaman aşımına uğradı. Lütfen tekrar deneyin.",
    APIConnectionError: "Bağlantı hatası oluştu.",
    CircuitBreakerOpenError: "Yapay zeka servisi geçici olarak kullanılamıyor. Lütfen daha sonra tekrar deneyin.",
    DataStoreError: "Veriler kaydedilemedi.",
}


def exception_to_user_message(exc: BaseException, fallback: str | None = None) -> str:
    """
    Map an exception to the literal string shown in the UI.

    Auth, validation and not-found errors carry their own message. Service
    errors get a fixed message. Anything else renders ``fallback`` (the
    page-specific error text) or a generic message.
    """
    if isinstance(exc, (AuthError, ValidationError, NotFoundError)):
        return exc.message

    for exc_class, message in _SERVICE_MESSAGES.items():
        if isinstance(exc, exc_class):
            return message

    if fallback is not None:
        return fallback

    if not isinstance(exc, PharmaAIError):
        logger.error(
            "Unhandled exception",
            extra={
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
            },
        )
    return GENERIC_ERROR_MESSAGE
