from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base error rendered as a JSON response by the app's exception handler"""

    status_code = 500
    error = "Internal Server Error"
    code = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details = details
        self.headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error, "message": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(GatewayError):
    status_code = 400
    error = "Validation Error"
    code = "INVALID_INPUT"
    default_message = "Invalid request body"


class MissingParametersError(GatewayError):
    status_code = 400
    error = "Missing required parameters"
    code = "MISSING_PARAMETERS"


class InvalidImageUrlError(GatewayError):
    status_code = 400
    error = "Invalid image URL"
    code = "INVALID_IMAGE_URL"
    default_message = "Please provide a valid HTTP/HTTPS image URL"


class InvalidAppKeyError(GatewayError):
    status_code = 400
    error = "Invalid app key"
    code = "INVALID_APP_KEY"
    default_message = "The provided appKey is not recognized"


class AuthError(GatewayError):
    status_code = 401
    error = "Unauthorized"
    code = "INVALID_API_KEY"
    default_message = "Invalid API key"


class TimestampError(GatewayError):
    status_code = 400
    error = "Invalid timestamp"
    code = "INVALID_TIMESTAMP"
    default_message = "Request timestamp is invalid or outside the allowed window"


class RateLimitError(GatewayError):
    status_code = 429
    error = "Too Many Requests"
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests, please try again later"


class CorsError(GatewayError):
    status_code = 403
    error = "CORS Error"
    code = "CORS_NOT_ALLOWED"
    default_message = "Origin not allowed by CORS policy"


class UpstreamTimeoutError(GatewayError):
    status_code = 408
    error = "Request Timeout"
    code = "REQUEST_TIMEOUT"
    default_message = "Analysis request timed out. Please try again."


class UpstreamFailureError(GatewayError):
    status_code = 500
    error = "Analysis failed"
    code = "ANALYSIS_ERROR"
    default_message = "Unable to process image analysis. Please check the image URL and try again."
