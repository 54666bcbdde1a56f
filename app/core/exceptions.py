from typing import Optional, Any


class ZimQuoteError(Exception):
    """
    Base exception for the ZimQuote application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(ZimQuoteError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class TransportAuthError(ZimQuoteError):
    """
    Raised when a webhook signature or verify token does not check out.
    """
    def __init__(self, message: str = "Webhook authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="TRANSPORT_AUTH_FAILED", status_code=403, details=details)


class IdentityError(ZimQuoteError):
    """
    Raised when a sender phone cannot be normalized.
    """
    def __init__(self, message: str = "Invalid sender identity", details: Optional[Any] = None):
        super().__init__(message, code="IDENTITY_ERROR", status_code=400, details=details)


class UnknownTenantError(ZimQuoteError):
    """
    Raised when a phone has no active business binding.
    """
    def __init__(self, message: str = "No active business", details: Optional[Any] = None):
        super().__init__(message, code="UNKNOWN_TENANT", status_code=404, details=details)


class AccessDenied(ZimQuoteError):
    """
    Raised when a role is not allowed into a section.
    """
    def __init__(self, message: str = "Access denied", details: Optional[Any] = None):
        super().__init__(message, code="ACCESS_DENIED", status_code=403, details=details)


class FeatureDenied(ZimQuoteError):
    """
    Raised when the business package does not include a feature.
    """
    def __init__(self, message: str = "Feature not in package", details: Optional[Any] = None):
        super().__init__(message, code="FEATURE_DENIED", status_code=402, details=details)


class ValidationError(ZimQuoteError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class PersistenceError(ZimQuoteError):
    """
    Raised when a database write needed for a commit fails.
    """
    def __init__(self, message: str = "Could not save changes", details: Optional[Any] = None):
        super().__init__(message, code="PERSISTENCE_ERROR", status_code=500, details=details)


class ConcurrencyConflict(PersistenceError):
    """
    Raised when the tenant record changed between load and save.
    """
    def __init__(self, message: str = "Tenant was modified concurrently", details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.code = "CONCURRENCY_CONFLICT"
        self.status_code = 409


class RenderError(ZimQuoteError):
    """
    Raised when the PDF renderer fails or is not configured.
    """
    def __init__(self, message: str = "Document rendering failed", details: Optional[Any] = None):
        super().__init__(message, code="RENDER_ERROR", status_code=502, details=details)


class ExternalServiceError(ZimQuoteError):
    """
    Raised when an external service (Twilio, Graph API) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)


class MonthlyLimitReached(FeatureDenied):
    """
    Raised when the package's monthly document allowance is used up.
    """
    def __init__(self, message: str = "Monthly document limit reached", details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.code = "MONTHLY_LIMIT_REACHED"
