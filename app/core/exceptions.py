from typing import Optional, Dict, Any


class AppException(Exception):
    """Base application exception"""
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "APP_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AppException):
    """Authentication related errors"""
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_ERROR",
            details=details
        )


class AuthorizationError(AppException):
    """Authorization related errors"""
    def __init__(self, message: str = "Forbidden", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=403,
            error_code="AUTHZ_ERROR",
            details=details
        )


class NotFoundError(AppException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details=details
        )


class ValidationError(AppException):
    """Validation errors"""
    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            message=message,
            status_code=400,
            error_code=error_code,
            details=details
        )


class InvalidPeriodError(ValidationError):
    """Period string is not a valid YYYY-MM month"""
    def __init__(self, period: Optional[str] = None):
        super().__init__(
            message="Invalid period format. Use YYYY-MM",
            details={"period": period},
            error_code="INVALID_PERIOD"
        )


class CalculationTimeoutError(AppException):
    """Commission calculation ran past its deadline"""
    def __init__(self, message: str = "Commission calculation timed out", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=504,
            error_code="CALCULATION_TIMEOUT",
            details=details
        )
